from flask import Blueprint, jsonify, request, current_app
from titleparty.services.games import build_context
from titleparty.services.games import state_machine, tally
from titleparty.services.games.scheduler import schedule_room_timer
from titleparty.services.games.snapshot import room_state


rooms = Blueprint('rooms', __name__)


def _context():
    return build_context(current_app._get_current_object())


def _schedule(room) -> None:
    schedule_room_timer(current_app._get_current_object(), room.id)


def _body() -> dict:
    return request.get_json(silent=True) or {}


@rooms.route('/create', methods=['POST'])
def create_room():
    data = _body()
    ctx = _context()
    room, player = state_machine.create_room(
        ctx,
        data.get('nickname'),
        data.get('max_players', ctx.settings.max_players_limit),
        data.get('total_rounds', 3),
    )
    return jsonify({
        'message': 'New room created!',
        'room': room.to_dict(),
        'player': player.to_dict(),
    }), 201


@rooms.route('/join', methods=['POST'])
def join_room():
    data = _body()
    room, player = state_machine.join_room(_context(), data.get('room_code'), data.get('nickname'))
    return jsonify({'room': room.to_dict(), 'player': player.to_dict()}), 201


@rooms.route('/<string:room_code>/state', methods=['GET'])
def get_room_state(room_code):
    ctx = _context()
    room = state_machine.get_room(ctx, room_code)
    viewer_id = None
    if request.args.get('player_id'):
        # Rejoin by identity: a known player id gets its hand and vote back.
        viewer_id = state_machine.get_player(ctx, room, request.args.get('player_id')).id
    return jsonify(room_state(ctx, room, viewer_id))


@rooms.route('/<string:room_code>/leaderboard', methods=['GET'])
def get_leaderboard(room_code):
    room = state_machine.get_room(_context(), room_code)
    return jsonify([p.to_dict() for p in tally.leaderboard(room)])


@rooms.route('/<string:room_code>/start', methods=['POST'])
def start_game(room_code):
    ctx = _context()
    room = state_machine.get_room(ctx, room_code)
    player = state_machine.get_player(ctx, room, _body().get('player_id'))
    state_machine.start_game(ctx, room, player.id)
    _schedule(room)
    return jsonify(room_state(ctx, room, player.id))


@rooms.route('/<string:room_code>/countdown', methods=['POST'])
def begin_countdown(room_code):
    ctx = _context()
    room = state_machine.get_room(ctx, room_code)
    state_machine.begin_countdown(ctx, room)
    _schedule(room)
    return jsonify(room.to_dict())


@rooms.route('/<string:room_code>/play', methods=['POST'])
def begin_playing(room_code):
    ctx = _context()
    room = state_machine.get_room(ctx, room_code)
    state_machine.begin_playing(ctx, room)
    _schedule(room)
    return jsonify(room.to_dict())


@rooms.route('/<string:room_code>/sync', methods=['POST'])
def sync_room(room_code):
    ctx = _context()
    room = state_machine.get_room(ctx, room_code)
    state_machine.sync_room(ctx, room)
    return jsonify(room.to_dict())


@rooms.route('/<string:room_code>/submissions', methods=['POST'])
def submit(room_code):
    data = _body()
    ctx = _context()
    room = state_machine.get_room(ctx, room_code)
    player = state_machine.get_player(ctx, room, data.get('player_id'))
    submission = tally.submit(
        ctx,
        room,
        player,
        data.get('round_number', room.current_round),
        data.get('card1_id'),
        data.get('card2_id'),
        data.get('free_word'),
        data.get('word_order'),
    )
    return jsonify(submission.to_dict()), 201


@rooms.route('/<string:room_code>/votes', methods=['POST'])
def cast_vote(room_code):
    data = _body()
    ctx = _context()
    room = state_machine.get_room(ctx, room_code)
    voter = state_machine.get_player(ctx, room, data.get('player_id'))
    vote = tally.cast_vote(ctx, room, voter, data.get('round_number', room.current_round), data.get('submission_id'))
    return jsonify({'message': 'Vote recorded', 'vote': vote.to_dict(), 'status': room.status.value})


@rooms.route('/<string:room_code>/hand/reload', methods=['POST'])
def reload_hand(room_code):
    ctx = _context()
    room = state_machine.get_room(ctx, room_code)
    player = state_machine.get_player(ctx, room, _body().get('player_id'))
    tally.reload_hand(ctx, room, player)
    return jsonify(room_state(ctx, room, player.id))


@rooms.route('/<string:room_code>/next', methods=['POST'])
def next_round(room_code):
    ctx = _context()
    room = state_machine.get_room(ctx, room_code)
    player = state_machine.get_player(ctx, room, _body().get('player_id'))
    state_machine.next_round(ctx, room, player.id)
    _schedule(room)
    return jsonify(room_state(ctx, room, player.id))


@rooms.route('/<string:room_code>/viewing', methods=['POST'])
def set_viewing_index(room_code):
    data = _body()
    ctx = _context()
    room = state_machine.get_room(ctx, room_code)
    player = state_machine.get_player(ctx, room, data.get('player_id'))
    state_machine.set_viewing_index(ctx, room, player.id, data.get('index'))
    return jsonify(room.to_dict())


@rooms.route('/<string:room_code>/show-all', methods=['POST'])
def set_show_all_submissions(room_code):
    data = _body()
    ctx = _context()
    room = state_machine.get_room(ctx, room_code)
    player = state_machine.get_player(ctx, room, data.get('player_id'))
    state_machine.set_show_all_submissions(ctx, room, player.id, data.get('show'))
    return jsonify(room.to_dict())
