class MovieNightError(Exception):
    """Base for every failure reported back to the participant."""

    status_code = 400
    code = "error"

    def __init__(self, message: str, **extra) -> None:
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict:
        return {"detail": self.message, "code": self.code, **self.extra}


class ValidationError(MovieNightError):
    status_code = 422
    code = "validation"


class CapacityError(ValidationError):
    status_code = 409
    code = "capacity"


class PhaseError(ValidationError):
    status_code = 409
    code = "wrong_phase"


class AlreadyProposedError(MovieNightError):
    status_code = 409
    code = "already_proposed"


class NotFoundError(MovieNightError):
    status_code = 404
    code = "not_found"


class AuthError(MovieNightError):
    status_code = 401
    code = "unauthenticated"


class NotMemberError(AuthError):
    status_code = 403
    code = "not_member"


class NotHostError(MovieNightError):
    status_code = 403
    code = "not_host"


class MetadataUnavailableError(MovieNightError):
    status_code = 502
    code = "metadata_unavailable"


class StoreError(MovieNightError):
    status_code = 503
    code = "store_unavailable"
