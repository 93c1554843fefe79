"""Error taxonomy shared by the game services and the HTTP layer.

Every rejected operation raises one of these before any state is changed.
The ``reason`` is a stable, machine-readable code; ``status_code`` is the
HTTP status the API layer renders it with.
"""


class QuizError(Exception):
    status_code = 500
    reason = 'InternalError'

    def __init__(self, message=None, reason=None, details=None):
        self.message = message or self.__class__.__doc__ or self.reason
        if reason:
            self.reason = reason
        self.details = details
        super().__init__(self.message)

    def to_dict(self):
        payload = {
            'success': False,
            'error': self.reason,
            'message': self.message,
        }
        if self.details:
            payload['details'] = self.details
        return payload


class ValidationError(QuizError):
    """Malformed input."""
    status_code = 400
    reason = 'ValidationError'


class AuthorizationError(QuizError):
    """Wrong role or not the owner."""
    status_code = 403
    reason = 'NotAuthorized'


class NotFoundError(QuizError):
    """Unknown id or code."""
    status_code = 404
    reason = 'NotFound'


class StateConflictError(QuizError):
    """Operation is not legal in the current session state."""
    status_code = 409
    reason = 'StateConflict'


class StoreUnavailableError(QuizError):
    """The session store could not be reached."""
    status_code = 503
    reason = 'StoreUnavailable'
