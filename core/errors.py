"""Domain exceptions raised by services and mapped to HTTP responses in api.main."""


class DomainError(Exception):
    """Base class for errors that carry a user-facing message and status code."""

    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainError):
    status_code = 400


class AuthenticationError(DomainError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class LimitExceededError(DomainError):
    """Plan limit reached for a metered resource."""

    status_code = 402

    def __init__(self, resource: str, limit: int):
        super().__init__(
            f"You have reached your plan limit of {limit} {resource}. Upgrade your plan to add more."
        )
        self.resource = resource
        self.limit = limit


class PermissionDeniedError(DomainError):
    status_code = 403

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)


class NotFoundError(DomainError):
    status_code = 404

    def __init__(self, entity: str = "Resource"):
        super().__init__(f"{entity} not found")


class ConflictError(DomainError):
    status_code = 409


class ExternalServiceError(DomainError):
    """An upstream provider (AI, payments) failed."""

    status_code = 502
