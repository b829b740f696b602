"""Error taxonomy shared by the game core and the request layer."""


class GameError(Exception):
    status_code = 400
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        payload = {'error': self.message}
        if self.retryable:
            payload['retryable'] = True
        return payload


class ValidationError(GameError):
    """Bad input (name length, category, config bounds). Nothing was changed."""
    status_code = 400


class NotFoundError(GameError):
    status_code = 404


class InvalidTransitionError(GameError):
    """The session is not in a state that allows the operation.

    Usually means the caller's view is stale and it should resync.
    """
    status_code = 409


class PersistenceError(GameError):
    """The store rejected or failed the write; the transition was not applied."""
    status_code = 503
    retryable = True
