from titleparty import db
from enum import Enum
import json
import random
import string
import time


class RoomStatus(str, Enum):
    WAITING = 'waiting'
    THEME_SELECTION = 'theme_selection'
    COUNTDOWN = 'countdown'
    PLAYING = 'playing'
    VOTING = 'voting'
    RESULTS = 'results'
    FINISHED = 'finished'


ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_room_code(session, length=6, attempts=20, rng=None):
    """Generate a room code that no existing room uses.

    Returns None when every attempt collided; the unique index on
    ``room.room_code`` still guards the insert against a concurrent creator.
    """
    rng = rng or random
    for _ in range(attempts):
        code = ''.join(rng.choices(ROOM_CODE_ALPHABET, k=length))
        if not session.query(Room.id).filter_by(room_code=code).first():
            return code
    return None


class WordCard(db.Model):
    __tablename__ = 'word_card'
    id = db.Column(db.Integer, primary_key=True)
    word = db.Column(db.String(32), unique=True, nullable=False)

    def to_dict(self):
        return {'id': self.id, 'word': self.word}


class Theme(db.Model):
    __tablename__ = 'theme'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), unique=True, nullable=False)
    description = db.Column(db.String(256), nullable=True)

    def to_dict(self):
        return {'id': self.id, 'name': self.name, 'description': self.description}


class Room(db.Model):
    __tablename__ = 'room'
    id = db.Column(db.Integer, primary_key=True)
    room_code = db.Column(db.String(6), unique=True, index=True, nullable=False)
    host_id = db.Column(db.Integer, db.ForeignKey('player.id', name='fk_room_host_id', use_alter=True), nullable=True)
    status = db.Column(
        db.Enum(RoomStatus, native_enum=False, length=32, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=RoomStatus.WAITING,
    )
    max_players = db.Column(db.Integer, nullable=False)
    total_rounds = db.Column(db.Integer, nullable=False)
    current_round = db.Column(db.Integer, nullable=False, default=0)
    current_theme_id = db.Column(db.Integer, db.ForeignKey('theme.id'), nullable=True)
    # Absolute deadline (epoch seconds) shared by every observer
    round_end_time = db.Column(db.Float, nullable=True)
    current_viewing_index = db.Column(db.Integer, nullable=False, default=0)
    show_all_submissions = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.Float, nullable=False, default=time.time)

    players = db.relationship(
        'Player', back_populates='room', foreign_keys='Player.room_id', order_by='Player.id'
    )
    current_theme = db.relationship('Theme')

    def is_host(self, player_id) -> bool:
        return player_id is not None and self.host_id == player_id

    def to_dict(self):
        return {
            'id': self.id,
            'room_code': self.room_code,
            'host_id': self.host_id,
            'status': self.status.value,
            'max_players': self.max_players,
            'total_rounds': self.total_rounds,
            'current_round': self.current_round,
            'current_theme': self.current_theme.to_dict() if self.current_theme else None,
            'round_end_time': self.round_end_time,
            'current_viewing_index': self.current_viewing_index,
            'show_all_submissions': self.show_all_submissions,
        }


class Player(db.Model):
    __tablename__ = 'player'
    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey('room.id'), nullable=False, index=True)
    nickname = db.Column(db.String(32), nullable=False)
    avatar = db.Column(db.String(8), nullable=False, default='1')
    total_votes = db.Column(db.Integer, nullable=False, default=0)
    hand_reloaded_round = db.Column(db.Integer, nullable=True)
    joined_at = db.Column(db.Float, nullable=False, default=time.time)

    room = db.relationship('Room', back_populates='players', foreign_keys=[room_id])
    hand = db.relationship('PlayerHand', back_populates='player', order_by='PlayerHand.id')

    def to_dict(self):
        return {
            'id': self.id,
            'room_id': self.room_id,
            'nickname': self.nickname,
            'avatar': self.avatar,
            'total_votes': self.total_votes,
            'hand_reloaded_round': self.hand_reloaded_round,
        }


class PlayerHand(db.Model):
    __tablename__ = 'player_hand'
    __table_args__ = (
        db.UniqueConstraint('player_id', 'word_card_id', name='uq_player_hand_card'),
    )
    id = db.Column(db.Integer, primary_key=True)
    player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False, index=True)
    word_card_id = db.Column(db.Integer, db.ForeignKey('word_card.id'), nullable=False)

    player = db.relationship('Player', back_populates='hand')
    card = db.relationship('WordCard')


class Submission(db.Model):
    __tablename__ = 'submission'
    __table_args__ = (
        db.UniqueConstraint('room_id', 'player_id', 'round_number', name='uq_submission_room_player_round'),
        db.CheckConstraint('card1_id <> card2_id', name='ck_submission_distinct_cards'),
    )
    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey('room.id'), nullable=False, index=True)
    player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    round_number = db.Column(db.Integer, nullable=False)
    card1_id = db.Column(db.Integer, db.ForeignKey('word_card.id'), nullable=False)
    card2_id = db.Column(db.Integer, db.ForeignKey('word_card.id'), nullable=False)
    free_word = db.Column(db.String(16), nullable=False)
    word_order_json = db.Column('word_order', db.Text, nullable=False)  # JSON-encoded [1, 2, 3] permutation
    votes_received = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.Float, nullable=False, default=time.time)

    player = db.relationship('Player')
    card1 = db.relationship('WordCard', foreign_keys=[card1_id])
    card2 = db.relationship('WordCard', foreign_keys=[card2_id])

    @property
    def word_order(self):
        return json.loads(self.word_order_json) if self.word_order_json else []

    @word_order.setter
    def word_order(self, value):
        self.word_order_json = json.dumps(list(value))

    def to_dict(self):
        from titleparty.services.games.slots import assemble_title, build_slots
        slots = build_slots(self)
        return {
            'id': self.id,
            'room_id': self.room_id,
            'player_id': self.player_id,
            'round_number': self.round_number,
            'card1': self.card1.to_dict() if self.card1 else None,
            'card2': self.card2.to_dict() if self.card2 else None,
            'free_word': self.free_word,
            'word_order': self.word_order,
            'slots': [s.to_dict() for s in slots],
            'title': assemble_title(slots),
            'votes_received': self.votes_received,
        }


class Vote(db.Model):
    __tablename__ = 'vote'
    __table_args__ = (
        db.UniqueConstraint('room_id', 'round_number', 'voter_id', name='uq_vote_room_round_voter'),
    )
    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey('room.id'), nullable=False, index=True)
    round_number = db.Column(db.Integer, nullable=False)
    voter_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False)
    submission_id = db.Column(db.Integer, db.ForeignKey('submission.id'), nullable=False)
    created_at = db.Column(db.Float, nullable=False, default=time.time)

    submission = db.relationship('Submission')

    def to_dict(self):
        return {
            'id': self.id,
            'round_number': self.round_number,
            'voter_id': self.voter_id,
            'submission_id': self.submission_id,
        }
