from titleparty.models import PlayerHand, RoomStatus
from .phase import derive_phase
from .state_machine import round_submissions, round_votes
from .tally import leaderboard


def room_state(ctx, room, viewer_id=None) -> dict:
    """Full room snapshot as observers see it, plus the viewer's own data."""
    now = ctx.now()
    players = list(room.players)
    submissions = round_submissions(ctx, room)
    votes = round_votes(ctx, room)
    viewer = next((p for p in players if p.id == viewer_id), None) if viewer_id is not None else None

    payload = room.to_dict()
    payload['players'] = [p.to_dict() for p in players]
    payload['leaderboard'] = [p.to_dict() for p in leaderboard(room)]
    payload['submissions'] = [s.to_dict() for s in submissions]
    payload['voted_player_ids'] = sorted({v.voter_id for v in votes})
    payload['server_time'] = now
    payload['durations'] = {
        'theme_selection': ctx.settings.theme_reveal_duration_sec,
        'countdown': ctx.settings.countdown_duration_sec,
        'playing': ctx.settings.round_duration_sec,
    }
    payload['phase'] = derive_phase(room, players, submissions, votes, viewer.id if viewer else None, now).value

    if viewer is not None:
        hand = ctx.session.query(PlayerHand).filter_by(player_id=viewer.id).order_by(PlayerHand.id).all()
        my_vote = next((v for v in votes if v.voter_id == viewer.id), None)
        payload['me'] = viewer.to_dict()
        payload['hand'] = [h.card.to_dict() for h in hand]
        payload['my_vote'] = my_vote.submission_id if my_vote else None
        payload['can_reload_hand'] = (
            room.status == RoomStatus.PLAYING and viewer.hand_reloaded_round != room.current_round
        )
    return payload
