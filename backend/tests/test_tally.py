import pytest

from titleparty import db
from titleparty.errors import ConfigurationError, ConflictError, InvalidTargetError, ValidationError
from titleparty.models import RoomStatus, Submission, Vote
from titleparty.services.games import GameSettings, dealer, state_machine, tally


def _round_total(room):
    return sum(s.votes_received for s in Submission.query.filter_by(room_id=room.id, round_number=room.current_round))


def test_submit_consumes_cards(ctx, playing_room):
    room, (host, p1, p2) = playing_room
    c1, c2 = dealer.hand_card_ids(ctx, host.id)[:2]

    sub = tally.submit(ctx, room, host, room.current_round, c1, c2, 'cat', [2, 1, 3])

    assert sub.votes_received == 0
    assert sub.word_order == [2, 1, 3]
    hand = dealer.hand_card_ids(ctx, host.id)
    assert len(hand) == 6
    assert c1 not in hand and c2 not in hand


@pytest.mark.parametrize('free_word', ['toolong', '', None])
def test_submit_rejects_bad_free_word(ctx, playing_room, free_word):
    room, (host, _, _) = playing_room
    c1, c2 = dealer.hand_card_ids(ctx, host.id)[:2]
    with pytest.raises(ValidationError):
        tally.submit(ctx, room, host, room.current_round, c1, c2, free_word, [1, 2, 3])
    assert len(dealer.hand_card_ids(ctx, host.id)) == 8


def test_submit_rejects_card_not_in_hand(ctx, playing_room):
    room, (host, p1, _) = playing_room
    mine = set(dealer.hand_card_ids(ctx, host.id))
    theirs = next(c for c in range(1, 100) if c not in mine)
    c1 = dealer.hand_card_ids(ctx, host.id)[0]
    with pytest.raises(ValidationError):
        tally.submit(ctx, room, host, room.current_round, c1, theirs, 'cat', [1, 2, 3])
    assert Submission.query.count() == 0


@pytest.mark.parametrize('word_order', [[1, 2], [1, 1, 3], [0, 1, 2], 'abc', None])
def test_submit_rejects_bad_word_order(ctx, playing_room, word_order):
    room, (host, _, _) = playing_room
    c1, c2 = dealer.hand_card_ids(ctx, host.id)[:2]
    with pytest.raises(ValidationError):
        tally.submit(ctx, room, host, room.current_round, c1, c2, 'cat', word_order)


def test_submit_twice_same_round_fails(ctx, playing_room, submit_for):
    room, (host, _, _) = playing_room
    submit_for(room, host)
    with pytest.raises(ValidationError):
        submit_for(room, host)
    assert Submission.query.filter_by(player_id=host.id).count() == 1


def test_racing_submit_loses_on_unique_constraint(ctx, playing_room, monkeypatch):
    room, (host, _, _) = playing_room
    room_id, round_number = room.id, room.current_round
    real_hand_card_ids = dealer.hand_card_ids
    before = real_hand_card_ids(ctx, host.id)
    c1, c2, c3, c4 = before[:4]

    def hand_after_concurrent_submit(ctx_, player_id):
        # The same player's other request commits between the pre-check and the insert
        db.session.add(Submission(
            room_id=room_id, player_id=player_id, round_number=round_number,
            card1_id=c3, card2_id=c4, free_word='dog', word_order=[1, 2, 3],
        ))
        db.session.commit()
        return real_hand_card_ids(ctx_, player_id)

    monkeypatch.setattr(dealer, 'hand_card_ids', hand_after_concurrent_submit)
    with pytest.raises(ConflictError):
        tally.submit(ctx, room, host, round_number, c1, c2, 'cat', [1, 2, 3])
    monkeypatch.undo()

    assert Submission.query.filter_by(room_id=room_id, player_id=host.id, round_number=round_number).count() == 1
    assert dealer.hand_card_ids(ctx, host.id) == before


def test_submit_after_deadline_closes_round(ctx, clock, playing_room, submit_for):
    room, (host, p1, _) = playing_room
    submit_for(room, host)
    clock.advance(ctx.settings.round_duration_sec + 1)

    with pytest.raises(ValidationError):
        submit_for(room, p1)

    assert room.status == RoomStatus.VOTING
    assert Submission.query.filter_by(player_id=p1.id).count() == 0


def test_failed_submit_sends_no_notifications(ctx, playing_room, notifications):
    room, (host, _, _) = playing_room
    notifications.clear()
    c1, c2 = dealer.hand_card_ids(ctx, host.id)[:2]
    with pytest.raises(ValidationError):
        tally.submit(ctx, room, host, room.current_round, c1, c2, 'waytoolong', [1, 2, 3])
    assert notifications == []


def test_full_round_of_three(ctx, playing_room, submit_for):
    room, (a, b, c) = playing_room
    sa = submit_for(room, a)
    sb = submit_for(room, b)
    assert room.status == RoomStatus.PLAYING
    sc = submit_for(room, c)
    assert room.status == RoomStatus.VOTING

    tally.cast_vote(ctx, room, a, room.current_round, sb.id)
    tally.cast_vote(ctx, room, b, room.current_round, sc.id)
    assert room.status == RoomStatus.VOTING
    tally.cast_vote(ctx, room, c, room.current_round, sa.id)

    assert room.status == RoomStatus.RESULTS
    assert _round_total(room) == 3
    assert [p.total_votes for p in (a, b, c)] == [1, 1, 1]


def test_vote_for_own_submission_rejected(ctx, playing_room, submit_for):
    room, (a, b, c) = playing_room
    sa = submit_for(room, a)
    submit_for(room, b)
    submit_for(room, c)

    with pytest.raises(InvalidTargetError):
        tally.cast_vote(ctx, room, a, room.current_round, sa.id)

    assert Vote.query.count() == 0
    assert _round_total(room) == 0
    assert a.total_votes == 0


def test_vote_for_missing_submission_rejected(ctx, playing_room, submit_for):
    room, (a, b, c) = playing_room
    for p in (a, b, c):
        submit_for(room, p)
    with pytest.raises(InvalidTargetError):
        tally.cast_vote(ctx, room, a, room.current_round, 9999)
    with pytest.raises(InvalidTargetError):
        tally.cast_vote(ctx, room, a, room.current_round, 'nope')


def test_repeat_vote_same_target_is_noop(ctx, playing_room, submit_for):
    room, (a, b, c) = playing_room
    _, sb, _ = [submit_for(room, p) for p in (a, b, c)]

    tally.cast_vote(ctx, room, a, room.current_round, sb.id)
    tally.cast_vote(ctx, room, a, room.current_round, sb.id)

    assert Vote.query.filter_by(voter_id=a.id).count() == 1
    assert db.session.get(Submission, sb.id).votes_received == 1
    assert b.total_votes == 1


def test_changing_vote_moves_exactly_one_point(ctx, playing_room, submit_for):
    room, (a, b, c) = playing_room
    _, sb, sc = [submit_for(room, p) for p in (a, b, c)]

    tally.cast_vote(ctx, room, a, room.current_round, sb.id)
    before = _round_total(room)
    tally.cast_vote(ctx, room, a, room.current_round, sc.id)

    assert _round_total(room) == before == 1
    assert db.session.get(Submission, sb.id).votes_received == 0
    assert db.session.get(Submission, sc.id).votes_received == 1
    assert (b.total_votes, c.total_votes) == (0, 1)
    votes = Vote.query.filter_by(voter_id=a.id).all()
    assert [v.submission_id for v in votes] == [sc.id]


def test_vote_change_never_goes_negative(ctx, playing_room, submit_for):
    room, (a, b, c) = playing_room
    _, sb, sc = [submit_for(room, p) for p in (a, b, c)]
    tally.cast_vote(ctx, room, a, room.current_round, sb.id)
    # Counter drifted to zero behind our back
    db.session.get(Submission, sb.id).votes_received = 0
    b.total_votes = 0
    db.session.commit()

    tally.cast_vote(ctx, room, a, room.current_round, sc.id)

    assert db.session.get(Submission, sb.id).votes_received == 0
    assert b.total_votes == 0
    assert c.total_votes == 1


def test_single_submitter_round_resolves(ctx, clock, playing_room, submit_for):
    room, (a, b, c) = playing_room
    sa = submit_for(room, a)
    clock.advance(ctx.settings.round_duration_sec)
    state_machine.sync_room(ctx, room)
    assert room.status == RoomStatus.VOTING

    tally.cast_vote(ctx, room, b, room.current_round, sa.id)
    assert room.status == RoomStatus.VOTING
    tally.cast_vote(ctx, room, c, room.current_round, sa.id)
    # The only author has nothing to vote for, so the round is complete
    assert room.status == RoomStatus.RESULTS


def test_duplicate_vote_rows_surface_as_conflict(ctx, playing_room, submit_for):
    room, (a, b, c) = playing_room
    _, sb, sc = [submit_for(room, p) for p in (a, b, c)]
    with pytest.raises(ConflictError):
        with ctx.transaction() as session:
            session.add(Vote(room_id=room.id, round_number=room.current_round, voter_id=a.id, submission_id=sb.id))
            session.add(Vote(room_id=room.id, round_number=room.current_round, voter_id=a.id, submission_id=sc.id))
    assert Vote.query.count() == 0


def test_reload_hand_once_per_round(ctx, playing_room):
    room, (a, _, _) = playing_room
    before = dealer.hand_card_ids(ctx, a.id)

    dealt = tally.reload_hand(ctx, room, a)
    after_first = dealer.hand_card_ids(ctx, a.id)

    assert len(after_first) == ctx.settings.reload_hand_size
    assert sorted(after_first) == sorted(dealt)
    assert len(set(after_first)) == len(after_first)
    assert a.hand_reloaded_round == room.current_round
    assert before != after_first

    with pytest.raises(ValidationError):
        tally.reload_hand(ctx, room, a)
    assert dealer.hand_card_ids(ctx, a.id) == after_first


def test_reload_hand_available_again_next_round(ctx, playing_room, submit_for, to_playing):
    room, (a, b, c) = playing_room
    tally.reload_hand(ctx, room, a)
    sa, sb, sc = [submit_for(room, p) for p in (a, b, c)]
    tally.cast_vote(ctx, room, a, room.current_round, sb.id)
    tally.cast_vote(ctx, room, b, room.current_round, sc.id)
    tally.cast_vote(ctx, room, c, room.current_round, sa.id)
    to_playing(room)

    assert room.current_round == 2
    assert len(dealer.hand_card_ids(ctx, a.id)) == ctx.settings.hand_size
    tally.reload_hand(ctx, room, a)
    assert a.hand_reloaded_round == 2


def test_reload_hand_outside_round_rejected(ctx, new_room):
    room, (host, _, _) = new_room(3)
    with pytest.raises(ValidationError):
        tally.reload_hand(ctx, room, host)


def test_reload_hand_after_deadline_closes_round(ctx, clock, playing_room, submit_for):
    room, (a, b, _) = playing_room
    submit_for(room, b)
    before = dealer.hand_card_ids(ctx, a.id)
    clock.advance(ctx.settings.round_duration_sec + 1)

    with pytest.raises(ValidationError):
        tally.reload_hand(ctx, room, a)

    assert room.status == RoomStatus.VOTING
    assert dealer.hand_card_ids(ctx, a.id) == before
    assert a.hand_reloaded_round is None


@pytest.mark.parametrize('hand_size,reload_hand_size', [(5, 8), (5, 5)])
def test_reload_hand_must_be_smaller_than_hand(hand_size, reload_hand_size):
    with pytest.raises(ConfigurationError):
        GameSettings.from_config({'HAND_SIZE': hand_size, 'RELOAD_HAND_SIZE': reload_hand_size})
    with pytest.raises(ConfigurationError):
        GameSettings(hand_size=hand_size, reload_hand_size=reload_hand_size)


def test_leaderboard_is_stable_on_ties(ctx, new_room):
    room, (a, b, c) = new_room(3)
    b.total_votes = 2
    db.session.commit()

    ranked = tally.leaderboard(room)

    assert [p.id for p in ranked] == [b.id, a.id, c.id]
