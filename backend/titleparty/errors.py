"""Game error taxonomy.

Every error the core raises derives from :class:`GameError` and carries the
HTTP status the API answers with. Game-logic errors leave committed state
untouched; the caller may simply retry.
"""
import re


class GameError(Exception):
    status_code = 400
    default_message = 'Game error'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def kind(self) -> str:
        name = type(self).__name__
        if name.endswith('Error'):
            name = name[:-len('Error')]
        return re.sub(r'(?<!^)(?=[A-Z])', '_', name).lower()

    def to_dict(self):
        return {'error': self.message, 'kind': self.kind}


class ValidationError(GameError):
    """User input violates a rule (free-word length, card not in hand, ...)."""
    status_code = 400
    default_message = 'Invalid input'


class InvalidTargetError(GameError):
    """Vote aimed at the voter's own or at a nonexistent submission."""
    status_code = 400
    default_message = 'Invalid vote target'


class ForbiddenError(GameError):
    status_code = 403
    default_message = 'Only the host may do that'


class NotFoundError(GameError):
    status_code = 404
    default_message = 'Room not found or already started'


class ConflictError(GameError):
    """A concurrent writer won the race for the same record."""
    status_code = 409
    default_message = 'Conflicting update, reload and try again'


class InvalidTransitionError(ConflictError):
    default_message = 'Transition not allowed from the current status'


class ConfigurationError(GameError):
    status_code = 503
    default_message = 'Game server is not configured'
