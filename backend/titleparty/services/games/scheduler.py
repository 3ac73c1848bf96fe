import time
from typing import Set, Tuple

from titleparty.errors import GameError
from titleparty.models import Room, RoomStatus
from . import build_context
from .state_machine import begin_countdown, begin_playing, sync_room


_scheduled_room_keys: Set[Tuple[int, str, int]] = set()


def _delay_for(ctx, room) -> float:
    settings = ctx.settings
    if room.status == RoomStatus.THEME_SELECTION:
        return settings.theme_reveal_duration_sec
    if room.status == RoomStatus.COUNTDOWN:
        return settings.countdown_duration_sec
    if room.status == RoomStatus.PLAYING:
        if room.round_end_time is None:
            return settings.round_duration_sec
        return max(0.0, room.round_end_time - ctx.now())
    return -1


def schedule_room_timer(app, room_id: int) -> None:
    """Schedule the server-side auto-advance for the room's current status.

    - No-ops when disabled, and in TESTING unless explicitly enabled
    - Ensures a single timer per (room_id, status, round)
    - Advances: theme_selection -> countdown -> playing -> voting (at the deadline)

    Clients run the same transitions from their own timers; whoever comes
    first wins and the rest are no-ops.
    """
    if not app.config.get('ENABLE_SCHEDULER', True):
        return
    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return

    with app.app_context():
        ctx = build_context(app)
        room = ctx.session.get(Room, room_id)
        if not room:
            return
        delay = _delay_for(ctx, room)
        if delay < 0:
            return
        status = room.status.value
        round_idx = int(room.current_round or 0)
        key = (room.id, status, round_idx)
        if key in _scheduled_room_keys:
            app.logger.info(f"[timer-skip] room={room.room_code} status={status} round={round_idx} already scheduled")
            return
        _scheduled_room_keys.add(key)
        app.logger.info(f"[timer-set] room={room.room_code} status={status} round={round_idx} delay={delay:.1f}s")

    def _worker(expected_status: str, rid: int, expected_round: int, wait: float):
        hb = int(app.config.get('TIMER_HEARTBEAT_SEC', 0) or 0)
        if hb > 0:
            slept = 0.0
            while slept < wait:
                step = min(hb, wait - slept)
                time.sleep(step)
                slept += step
                app.logger.info(
                    f"[timer-heartbeat] room={rid} status={expected_status} round={expected_round} "
                    f"remaining={max(0.0, wait - slept):.1f}s"
                )
        else:
            time.sleep(wait)

        with app.app_context():
            wctx = build_context(app)
            r = wctx.session.get(Room, rid)
            _scheduled_room_keys.discard((rid, expected_status, expected_round))
            if not r:
                return
            app.logger.info(
                f"[timer-fire] room={r.room_code} expected_status={expected_status} expected_round={expected_round} "
                f"actual_status={r.status.value} actual_round={r.current_round}"
            )
            if r.status.value != expected_status or r.current_round != expected_round:
                app.logger.info(f"[timer-abort] room={r.room_code} status/round moved on")
                return
            try:
                if r.status == RoomStatus.THEME_SELECTION:
                    begin_countdown(wctx, r)
                elif r.status == RoomStatus.COUNTDOWN:
                    begin_playing(wctx, r)
                else:
                    sync_room(wctx, r)
            except GameError as exc:
                app.logger.info(f"[timer-abort] room={r.room_code} {exc.kind}: {exc.message}")
                return
            wctx.session.expire(r)
            # Still playing means the deadline has not quite arrived; wait again.
            again = r.status.value != expected_status or r.status == RoomStatus.PLAYING
        if again:
            schedule_room_timer(app, rid)

    if app.config.get('TESTING'):
        _worker(status, room_id, round_idx, delay)
    else:
        from titleparty import socketio
        socketio.start_background_task(_worker, status, room_id, round_idx, delay)
