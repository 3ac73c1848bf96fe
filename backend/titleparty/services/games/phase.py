"""Client phase derivation.

Every observer runs :func:`derive_phase` against the latest snapshot it has
and renders whatever comes out. The function reads nothing but its arguments
(including ``now``), so observers holding the same snapshot agree, whatever
order their notifications arrived in.

Inputs are duck-typed: ORM rows, dataclasses or namespaces with the model's
attribute names all work.
"""

from enum import Enum
from typing import Iterable, Optional, Set

from titleparty.models import RoomStatus


class Phase(str, Enum):
    LOADING = 'loading'
    LOBBY = 'lobby'
    THEME_REVEAL = 'theme_reveal'
    COUNTDOWN = 'countdown'
    PLAYING = 'playing'
    VOTING = 'voting'
    RESULTS = 'results'


_FIXED = {
    RoomStatus.WAITING: Phase.LOBBY,
    RoomStatus.THEME_SELECTION: Phase.THEME_REVEAL,
    RoomStatus.COUNTDOWN: Phase.COUNTDOWN,
}


def eligible_voters(players, submissions) -> Set[int]:
    """Seated players that have at least one submission they may vote for."""
    authors = [s.player_id for s in submissions]
    return {p.id for p in players if any(a != p.id for a in authors)}


def _status(room) -> Optional[RoomStatus]:
    try:
        return RoomStatus(room.status)
    except ValueError:
        return None


def derive_phase(room, players: Iterable, submissions: Iterable, votes: Iterable,
                 viewer_id=None, now: Optional[float] = None) -> Phase:
    """Return the phase an observer should show for this snapshot.

    ``submissions`` and ``votes`` may span several rounds; only the room's
    current round is considered. ``now`` is epoch seconds; without it a
    deadline is never treated as passed.
    """
    if room is None:
        return Phase.LOADING
    status = _status(room)
    if status is None:
        return Phase.LOADING
    players = list(players or [])
    if viewer_id is not None and all(p.id != viewer_id for p in players):
        return Phase.LOADING

    if status in _FIXED:
        return _FIXED[status]

    round_number = room.current_round
    round_subs = [s for s in (submissions or []) if s.round_number == round_number]

    if status == RoomStatus.PLAYING:
        deadline = room.round_end_time
        if deadline is not None and now is not None and now >= deadline:
            return Phase.VOTING
        if viewer_id is not None and any(s.player_id == viewer_id for s in round_subs):
            return Phase.VOTING
        return Phase.PLAYING

    if status in (RoomStatus.VOTING, RoomStatus.RESULTS):
        voters = {v.voter_id for v in (votes or []) if v.round_number == round_number}
        if players and round_subs and eligible_voters(players, round_subs) <= voters:
            return Phase.RESULTS
        return Phase.VOTING

    if status == RoomStatus.FINISHED:
        return Phase.RESULTS

    return Phase.LOADING
