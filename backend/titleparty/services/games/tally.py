from typing import List

from sqlalchemy import update

from titleparty.errors import ConflictError, InvalidTargetError, ValidationError
from titleparty.models import Player, Room, RoomStatus, Submission, Vote
from . import dealer
from .slots import is_valid_word_order
from .state_machine import as_int, close_submissions_if_due, finish_voting_if_complete


def _adjust_votes(ctx, submission_id: int, player_id: int, delta: int) -> None:
    """Move a submission's tally and its author's score by ``delta``.

    Both counters are updated in SQL and never drop below zero.
    """
    sub_stmt = update(Submission).where(Submission.id == submission_id)
    player_stmt = update(Player).where(Player.id == player_id)
    if delta < 0:
        sub_stmt = sub_stmt.where(Submission.votes_received > 0)
        player_stmt = player_stmt.where(Player.total_votes > 0)
    ctx.session.execute(
        sub_stmt.values(votes_received=Submission.votes_received + delta)
        .execution_options(synchronize_session=False)
    )
    ctx.session.execute(
        player_stmt.values(total_votes=Player.total_votes + delta)
        .execution_options(synchronize_session=False)
    )


def submit(ctx, room: Room, player: Player, round_number, card1_id, card2_id, free_word, word_order) -> Submission:
    """Record a player's title for the round and consume the two cards used."""
    card1_id = as_int(card1_id, 'card1_id')
    card2_id = as_int(card2_id, 'card2_id')
    round_number = as_int(round_number, 'round_number')
    limit = ctx.settings.free_word_max_length
    if not isinstance(free_word, str) or not free_word:
        raise ValidationError('Free word is required')
    if len(free_word) > limit:
        raise ValidationError(f"Free word must be {limit} characters or less")
    if card1_id == card2_id:
        raise ValidationError('Choose two different cards')
    if not is_valid_word_order(word_order):
        raise ValidationError('word_order must be an ordering of [1, 2, 3]')
    if round_number != room.current_round:
        raise ValidationError('Submissions are closed for this round')

    # A passed deadline closes the round before this submission is considered.
    with ctx.transaction():
        close_submissions_if_due(ctx, room)
    if room.status != RoomStatus.PLAYING:
        raise ValidationError('Submissions are closed for this round')

    with ctx.transaction() as session:
        existing = session.query(Submission.id).filter_by(
            room_id=room.id, player_id=player.id, round_number=round_number
        ).first()
        if existing:
            raise ValidationError('Already submitted for this round')
        held = set(dealer.hand_card_ids(ctx, player.id))
        if card1_id not in held or card2_id not in held:
            raise ValidationError('Card is not in your hand')
        submission = Submission(
            room_id=room.id,
            player_id=player.id,
            round_number=round_number,
            card1_id=card1_id,
            card2_id=card2_id,
            free_word=free_word,
            word_order=list(word_order),
            votes_received=0,
        )
        session.add(submission)
        session.flush()
        if dealer.consume(ctx, player, [card1_id, card2_id]) != 2:
            raise ConflictError('Hand changed while submitting, reload and try again')
        ctx.notify(room.room_code, 'submission')
        ctx.notify(room.room_code, 'hand')
        close_submissions_if_due(ctx, room)
    ctx.logger.info(f"[submit] room={room.room_code} round={round_number} player={player.id} submission={submission.id}")
    return submission


def cast_vote(ctx, room: Room, voter: Player, round_number, submission_id) -> Vote:
    """Cast or move the voter's single vote for the round.

    Voting again for the same submission changes nothing. Voting for a
    different one moves the vote: the old tally and its author's score go
    down by one, the new ones go up by one, all in one transaction.
    """
    if room.status not in (RoomStatus.PLAYING, RoomStatus.VOTING):
        raise ValidationError('Voting is closed')
    round_number = as_int(round_number, 'round_number')
    if round_number != room.current_round:
        raise ValidationError('Voting is closed for that round')
    target = None
    if submission_id is not None and not isinstance(submission_id, bool):
        try:
            target = ctx.session.get(Submission, int(submission_id))
        except (TypeError, ValueError):
            target = None
    if target is None or target.room_id != room.id or target.round_number != round_number:
        raise InvalidTargetError('Submission not found in this round')
    if target.player_id == voter.id:
        raise InvalidTargetError('You cannot vote for your own submission')

    with ctx.transaction() as session:
        prior = session.query(Vote).filter_by(
            room_id=room.id, round_number=round_number, voter_id=voter.id
        ).first()
        if prior is not None and prior.submission_id == target.id:
            return prior
        if prior is not None:
            previous_id = prior.submission_id
            old = session.get(Submission, previous_id)
            if old is not None:
                _adjust_votes(ctx, old.id, old.player_id, -1)
            session.delete(prior)
            session.flush()
            ctx.logger.info(
                f"[vote-replace] room={room.room_code} round={round_number} voter={voter.id} "
                f"from={previous_id} to={target.id}"
            )
        vote = Vote(room_id=room.id, round_number=round_number, voter_id=voter.id, submission_id=target.id)
        session.add(vote)
        session.flush()
        _adjust_votes(ctx, target.id, target.player_id, +1)
        session.expire_all()
        ctx.notify(room.room_code, 'vote')
        ctx.notify(room.room_code, 'submission')
        ctx.notify(room.room_code, 'player')
        finish_voting_if_complete(ctx, room)
    ctx.logger.info(f"[vote] room={room.room_code} round={round_number} voter={voter.id} submission={target.id}")
    return vote


def reload_hand(ctx, room: Room, player: Player) -> List[int]:
    """Once per round: throw the whole hand away for a smaller fresh one."""
    if room.status != RoomStatus.PLAYING:
        raise ValidationError('Hands can only be reloaded during a round')
    # A passed deadline ends the round before the hand is touched.
    with ctx.transaction():
        close_submissions_if_due(ctx, room)
    if room.status != RoomStatus.PLAYING:
        raise ValidationError('Hands can only be reloaded during a round')
    current = room.current_round
    with ctx.transaction() as session:
        result = session.execute(
            update(Player)
            .where(
                Player.id == player.id,
                (Player.hand_reloaded_round.is_(None)) | (Player.hand_reloaded_round != current),
            )
            .values(hand_reloaded_round=current)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise ValidationError('Hand already reloaded this round')
        session.expire(player)
        dealt = dealer.redeal(ctx, player, ctx.settings.reload_hand_size)
        ctx.notify(room.room_code, 'player')
    ctx.logger.info(f"[reload] room={room.room_code} round={current} player={player.id} cards={len(dealt)}")
    return dealt


def leaderboard(room: Room) -> List[Player]:
    """Players by total votes, highest first; ties keep join order."""
    return sorted(room.players, key=lambda p: p.total_votes, reverse=True)
