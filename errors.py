"""
Error taxonomy for the social workflows.

Services raise these; the FastAPI app turns them into
``{"success": false, "kind": ..., "message": ...}`` responses with the
matching status code.
"""


class SocialError(Exception):
    kind = "Error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"success": False, "kind": self.kind, "message": self.message}


class NotFoundError(SocialError):
    """An entity id does not resolve."""
    kind = "NotFound"
    status_code = 404


class InvalidStateError(SocialError):
    """The operation is illegal for the entity's current lifecycle state."""
    kind = "InvalidState"
    status_code = 409


class InvalidOperationError(SocialError):
    """A business rule is violated, e.g. connecting to yourself."""
    kind = "InvalidOperation"
    status_code = 400


class ConflictError(SocialError):
    kind = "Conflict"
    status_code = 409


class AlreadyConnectedError(ConflictError):
    pass


class DuplicatePendingError(ConflictError):
    pass


class DependencyError(SocialError):
    """Storage or channel collaborator failure."""
    kind = "Dependency"
    status_code = 503


class AuthenticationError(SocialError):
    kind = "Unauthorized"
    status_code = 401
