"""Room state machine.

Status flow::

    waiting -> theme_selection -> countdown -> playing -> voting -> results
                     ^                                                 |
                     +------------------ next round -------------------+
                                                                       |
                                                                   finished

Every transition is a compare-and-swap on ``room.status``. Whoever loses the
race sees zero affected rows: timer-driven transitions treat that as "someone
already did it", host actions surface it as a conflict.
"""

from typing import Optional, Tuple

from sqlalchemy import update

from titleparty.errors import (
    ConfigurationError,
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from titleparty.models import Player, Room, RoomStatus, Submission, Theme, Vote, generate_room_code
from . import dealer
from .phase import eligible_voters


TRANSITIONS = {
    RoomStatus.WAITING: frozenset({RoomStatus.THEME_SELECTION}),
    RoomStatus.THEME_SELECTION: frozenset({RoomStatus.COUNTDOWN}),
    RoomStatus.COUNTDOWN: frozenset({RoomStatus.PLAYING}),
    RoomStatus.PLAYING: frozenset({RoomStatus.VOTING}),
    RoomStatus.VOTING: frozenset({RoomStatus.RESULTS}),
    RoomStatus.RESULTS: frozenset({RoomStatus.THEME_SELECTION, RoomStatus.FINISHED}),
    RoomStatus.FINISHED: frozenset(),
}

MAX_NICKNAME_LENGTH = 32


def can_transition(source: RoomStatus, target: RoomStatus) -> bool:
    return target in TRANSITIONS.get(source, frozenset())


def _transition(ctx, room: Room, target: RoomStatus, *guards, **values) -> bool:
    source = room.status
    if not can_transition(source, target):
        raise InvalidTransitionError(f"Cannot move from {source.value} to {target.value}")
    result = ctx.session.execute(
        update(Room)
        .where(Room.id == room.id, Room.status == source, *guards)
        .values(status=target, **values)
        .execution_options(synchronize_session=False)
    )
    ctx.session.expire(room)
    if result.rowcount != 1:
        ctx.logger.info(f"[transition-lost] room={room.id} {source.value}->{target.value}")
        return False
    ctx.notify(room.room_code, 'room')
    return True


def _require_host(room: Room, player_id, action: str) -> None:
    if not room.is_host(player_id):
        raise ForbiddenError(f"Only the host can {action}")


def _pick_theme(ctx) -> Theme:
    # Uniform pick with replacement: a theme may come up again in a later round.
    theme_ids = [r[0] for r in ctx.session.query(Theme.id).order_by(Theme.id).all()]
    if not theme_ids:
        raise ConfigurationError('No themes available')
    return ctx.session.get(Theme, ctx.rng.choice(theme_ids))


def _clean_nickname(nickname) -> str:
    nickname = (nickname or '').strip() if isinstance(nickname, str) else ''
    if not nickname:
        raise ValidationError('Nickname is required')
    if len(nickname) > MAX_NICKNAME_LENGTH:
        raise ValidationError(f"Nickname must be {MAX_NICKNAME_LENGTH} characters or less")
    return nickname


def as_int(value, name: str) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be a number")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be a number")


# ---- Lookups ----

def get_room(ctx, room_code) -> Room:
    code = (room_code or '').strip().upper()
    room = ctx.session.query(Room).filter_by(room_code=code).first() if code else None
    if room is None:
        raise NotFoundError('Room not found')
    return room


def get_player(ctx, room: Room, player_id) -> Player:
    if player_id is None:
        raise ValidationError('player_id is required')
    player = ctx.session.query(Player).filter_by(id=as_int(player_id, 'player_id'), room_id=room.id).first()
    if player is None:
        raise NotFoundError('Player not found in this room')
    return player


def round_submissions(ctx, room: Room, round_number: Optional[int] = None):
    rnd = room.current_round if round_number is None else round_number
    return (
        ctx.session.query(Submission)
        .filter_by(room_id=room.id, round_number=rnd)
        .order_by(Submission.id)
        .all()
    )


def round_votes(ctx, room: Room, round_number: Optional[int] = None):
    rnd = room.current_round if round_number is None else round_number
    return ctx.session.query(Vote).filter_by(room_id=room.id, round_number=rnd).order_by(Vote.id).all()


def deadline_passed(room: Room, now: float) -> bool:
    return room.round_end_time is not None and now >= room.round_end_time


def all_submitted(ctx, room: Room) -> bool:
    seated = {p.id for p in room.players}
    submitted = {s.player_id for s in round_submissions(ctx, room)}
    return bool(seated) and seated <= submitted


def all_voted(ctx, room: Room) -> bool:
    voters = {v.voter_id for v in round_votes(ctx, room)}
    return eligible_voters(room.players, round_submissions(ctx, room)) <= voters


# ---- Lobby ----

def create_room(ctx, nickname, max_players, total_rounds) -> Tuple[Room, Player]:
    settings = ctx.settings
    nickname = _clean_nickname(nickname)
    max_players = as_int(max_players, 'max_players')
    total_rounds = as_int(total_rounds, 'total_rounds')
    if not settings.min_players <= max_players <= settings.max_players_limit:
        raise ValidationError(
            f"max_players must be between {settings.min_players} and {settings.max_players_limit}"
        )
    if not 1 <= total_rounds <= settings.max_total_rounds:
        raise ValidationError(f"total_rounds must be between 1 and {settings.max_total_rounds}")

    with ctx.transaction() as session:
        code = generate_room_code(session, settings.room_code_length, settings.room_code_attempts, ctx.rng)
        if code is None:
            raise ConfigurationError('Could not allocate a room code')
        room = Room(
            room_code=code,
            status=RoomStatus.WAITING,
            max_players=max_players,
            total_rounds=total_rounds,
            current_round=0,
        )
        session.add(room)
        session.flush()
        host = Player(room_id=room.id, nickname=nickname, avatar='1')
        session.add(host)
        session.flush()
        room.host_id = host.id
        dealer.deal(ctx, host, settings.hand_size)
        ctx.notify(room.room_code, 'room')
        ctx.notify(room.room_code, 'player')
    ctx.logger.info(f"[create] room={room.room_code} host={host.id} max_players={max_players} rounds={total_rounds}")
    return room, host


def join_room(ctx, room_code, nickname) -> Tuple[Room, Player]:
    nickname = _clean_nickname(nickname)
    code = (room_code or '').strip().upper() if isinstance(room_code, str) else ''
    if not code:
        raise ValidationError('Room code is required')

    with ctx.transaction() as session:
        room = session.query(Room).filter_by(room_code=code, status=RoomStatus.WAITING).first()
        if room is None:
            raise NotFoundError()
        seated = session.query(Player).filter_by(room_id=room.id).count()
        if seated >= room.max_players:
            raise ValidationError('Room is full')
        player = Player(room_id=room.id, nickname=nickname, avatar=str(ctx.rng.randint(1, 6)))
        session.add(player)
        session.flush()
        # A concurrent join may have taken the last seat meanwhile.
        if session.query(Player).filter_by(room_id=room.id).count() > room.max_players:
            raise ValidationError('Room is full')
        dealer.deal(ctx, player, ctx.settings.hand_size)
        ctx.notify(room.room_code, 'player')
    ctx.logger.info(f"[join] room={room.room_code} player={player.id}")
    return room, player


# ---- Round flow ----

def start_game(ctx, room: Room, player_id) -> Room:
    _require_host(room, player_id, 'start the game')
    if room.status != RoomStatus.WAITING:
        raise InvalidTransitionError('Game has already started')
    seated = len(room.players)
    if seated < ctx.settings.min_players:
        raise ValidationError(f"At least {ctx.settings.min_players} players are required to start")
    if seated > room.max_players:
        raise ValidationError('Too many players in the room')

    with ctx.transaction():
        theme = _pick_theme(ctx)
        won = _transition(
            ctx, room, RoomStatus.THEME_SELECTION,
            Room.current_round == 0,
            current_round=1,
            current_theme_id=theme.id,
            round_end_time=None,
            current_viewing_index=0,
            show_all_submissions=False,
        )
        if not won:
            raise ConflictError('Game has already started')
        dealer.top_up_room(ctx, room)
    ctx.logger.info(f"[start] room={room.room_code} round={room.current_round} theme={room.current_theme_id}")
    return room


def begin_countdown(ctx, room: Room) -> Room:
    """theme_selection -> countdown. Any client may call this once its reveal timer ends."""
    if room.status != RoomStatus.THEME_SELECTION:
        raise InvalidTransitionError(f"Cannot start the countdown while {room.status.value}")
    if room.current_theme_id is None:
        raise ValidationError('Theme not selected')
    with ctx.transaction():
        if _transition(ctx, room, RoomStatus.COUNTDOWN):
            ctx.logger.info(f"[countdown] room={room.room_code} round={room.current_round}")
    return room


def begin_playing(ctx, room: Room) -> Room:
    """countdown -> playing, stamping the absolute round deadline."""
    if room.status != RoomStatus.COUNTDOWN:
        raise InvalidTransitionError(f"Cannot start playing while {room.status.value}")
    deadline = ctx.now() + ctx.settings.round_duration_sec
    with ctx.transaction():
        if _transition(ctx, room, RoomStatus.PLAYING, round_end_time=deadline):
            ctx.logger.info(f"[play] room={room.room_code} round={room.current_round} deadline={deadline}")
    return room


def close_submissions_if_due(ctx, room: Room) -> bool:
    """playing -> voting once the deadline passed or every seat has submitted.

    The deadline is checked first so that a late submission can never keep a
    stale round open.
    """
    if room.status != RoomStatus.PLAYING:
        return False
    if deadline_passed(room, ctx.now()):
        reason = 'deadline'
    elif all_submitted(ctx, room):
        reason = 'all_submitted'
    else:
        return False
    round_number = room.current_round
    if not _transition(ctx, room, RoomStatus.VOTING, current_viewing_index=0, show_all_submissions=False):
        return False
    ctx.logger.info(f"[close] room={room.room_code} round={round_number} reason={reason}")
    # A round nobody can vote in (no submissions) goes straight to results.
    finish_voting_if_complete(ctx, room)
    return True


def finish_voting_if_complete(ctx, room: Room) -> bool:
    """voting -> results once every eligible voter has a recorded vote."""
    if room.status != RoomStatus.VOTING or not all_voted(ctx, room):
        return False
    round_number = room.current_round
    if not _transition(ctx, room, RoomStatus.RESULTS):
        return False
    ctx.logger.info(f"[results] room={room.room_code} round={round_number}")
    return True


def sync_room(ctx, room: Room) -> Room:
    """Re-evaluate the timer and completion driven transitions. Idempotent."""
    with ctx.transaction():
        if room.status == RoomStatus.PLAYING:
            close_submissions_if_due(ctx, room)
        elif room.status == RoomStatus.VOTING:
            finish_voting_if_complete(ctx, room)
        elif room.status in (RoomStatus.THEME_SELECTION, RoomStatus.COUNTDOWN):
            # Interrupted round advancement is finished by re-running the top-up.
            dealer.top_up_room(ctx, room)
    return room


def next_round(ctx, room: Room, player_id) -> Room:
    _require_host(room, player_id, 'advance the round')
    if room.status != RoomStatus.RESULTS:
        raise InvalidTransitionError(f"Cannot advance while {room.status.value}")

    with ctx.transaction():
        prev_round = room.current_round
        if prev_round >= room.total_rounds:
            if not _transition(ctx, room, RoomStatus.FINISHED, Room.current_round >= Room.total_rounds):
                raise ConflictError('Round already advanced')
            ctx.logger.info(f"[finish] room={room.room_code} finished at round={prev_round}")
            return room
        theme = _pick_theme(ctx)
        won = _transition(
            ctx, room, RoomStatus.THEME_SELECTION,
            Room.current_round == prev_round,
            Room.current_round < Room.total_rounds,
            current_round=Room.current_round + 1,
            current_theme_id=theme.id,
            round_end_time=None,
            current_viewing_index=0,
            show_all_submissions=False,
        )
        if not won:
            raise ConflictError('Round already advanced')
        dealer.top_up_room(ctx, room)
    ctx.logger.info(f"[next_round] room={room.room_code} advance round {prev_round} -> {room.current_round}")
    return room


# ---- Reveal controls ----

def set_viewing_index(ctx, room: Room, player_id, index) -> Room:
    _require_host(room, player_id, 'change the submission being shown')
    if room.status not in (RoomStatus.VOTING, RoomStatus.RESULTS):
        raise ValidationError('Submissions are only shown during voting and results')
    index = as_int(index, 'index')
    count = len(round_submissions(ctx, room))
    if count == 0:
        raise ValidationError('No submissions to show')
    if not 0 <= index < count:
        raise ValidationError(f"index must be between 0 and {max(count - 1, 0)}")
    with ctx.transaction():
        room.current_viewing_index = index
        ctx.notify(room.room_code, 'room')
    return room


def set_show_all_submissions(ctx, room: Room, player_id, show) -> Room:
    _require_host(room, player_id, 'change the reveal mode')
    if not isinstance(show, bool):
        raise ValidationError('show must be true or false')
    with ctx.transaction():
        room.show_all_submissions = show
        ctx.notify(room.room_code, 'room')
    return room
