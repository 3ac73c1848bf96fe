"""Explicit context handed to every core operation.

The core never reaches for a module-level database or socket handle; the
caller builds a :class:`GameContext` (one per request in the web app, one per
test in the suite) and passes it in.
"""

import logging
import random
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, List, Mapping, Optional, Tuple

from sqlalchemy.exc import IntegrityError

from titleparty.errors import ConfigurationError, ConflictError


@dataclass(frozen=True)
class GameSettings:
    hand_size: int = 8
    reload_hand_size: int = 5
    free_word_max_length: int = 4
    min_players: int = 3
    max_players_limit: int = 6
    max_total_rounds: int = 10
    room_code_length: int = 6
    room_code_attempts: int = 20
    theme_reveal_duration_sec: int = 3
    countdown_duration_sec: int = 3
    round_duration_sec: int = 180

    def __post_init__(self):
        if self.reload_hand_size >= self.hand_size:
            raise ConfigurationError(
                f"RELOAD_HAND_SIZE ({self.reload_hand_size}) must be smaller than HAND_SIZE ({self.hand_size})"
            )

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> 'GameSettings':
        defaults = cls()
        return cls(
            hand_size=int(config.get('HAND_SIZE', defaults.hand_size)),
            reload_hand_size=int(config.get('RELOAD_HAND_SIZE', defaults.reload_hand_size)),
            free_word_max_length=int(config.get('FREE_WORD_MAX_LENGTH', defaults.free_word_max_length)),
            min_players=int(config.get('MIN_PLAYERS', defaults.min_players)),
            max_players_limit=int(config.get('MAX_PLAYERS_LIMIT', defaults.max_players_limit)),
            max_total_rounds=int(config.get('MAX_TOTAL_ROUNDS', defaults.max_total_rounds)),
            room_code_length=int(config.get('ROOM_CODE_LENGTH', defaults.room_code_length)),
            room_code_attempts=int(config.get('ROOM_CODE_ATTEMPTS', defaults.room_code_attempts)),
            theme_reveal_duration_sec=int(config.get('THEME_REVEAL_DURATION_SEC', defaults.theme_reveal_duration_sec)),
            countdown_duration_sec=int(config.get('COUNTDOWN_DURATION_SEC', defaults.countdown_duration_sec)),
            round_duration_sec=int(config.get('ROUND_DURATION_SEC', defaults.round_duration_sec)),
        )


Notifier = Callable[[str, str], None]


@dataclass
class GameContext:
    session: Any
    settings: GameSettings = field(default_factory=GameSettings)
    rng: random.Random = field(default_factory=random.Random)
    clock: Callable[[], float] = time.time
    notifier: Optional[Notifier] = None
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger('titleparty'))
    _pending: List[Tuple[str, str]] = field(default_factory=list, init=False, repr=False)

    def now(self) -> float:
        return self.clock()

    def notify(self, room_code: str, record: str) -> None:
        """Queue a change notification; delivered after the next commit."""
        if (room_code, record) not in self._pending:
            self._pending.append((room_code, record))

    @contextmanager
    def transaction(self):
        """One logical mutation: commit once, or roll everything back.

        Uniqueness violations raised while flushing or committing surface as
        :class:`ConflictError`.
        """
        try:
            yield self.session
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            self._pending.clear()
            self.logger.info(f"[conflict] {exc.orig}")
            raise ConflictError() from exc
        except Exception:
            self.session.rollback()
            self._pending.clear()
            raise
        self._flush_notifications()

    def _flush_notifications(self) -> None:
        pending, self._pending = self._pending, []
        if not self.notifier:
            return
        for room_code, record in pending:
            self.notifier(room_code, record)
