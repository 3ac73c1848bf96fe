from flask import Blueprint, jsonify
from sqlalchemy import text
from titleparty import db

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the Title Party game server!'})


@main.route('/health')
def health():
    # OperationalError from an unreachable store is rendered as 503 by the app
    db.session.execute(text('SELECT 1'))
    return jsonify({'status': 'ok'})
