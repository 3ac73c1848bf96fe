"""Game domain services: hands, tallies, room flow and phase derivation.

This package contains the game core that HTTP routes, socket handlers and
timers call into, keeping transport concerns separated from game mechanics.
Callers hand every operation a :class:`GameContext` built by
:func:`build_context`.
"""

from .context import GameContext, GameSettings


def emit_state_update(room_code: str, record: str) -> None:
    from titleparty import socketio
    socketio.emit('state_update', {'room_code': room_code, 'record': record},
                  to=f"room:{room_code}", namespace='/ws')


def build_context(app) -> GameContext:
    """Context bound to the app's session, settings, logger and socket emitter."""
    from titleparty import db
    return GameContext(
        session=db.session,
        settings=GameSettings.from_config(app.config),
        notifier=emit_state_update,
        logger=app.logger,
    )
