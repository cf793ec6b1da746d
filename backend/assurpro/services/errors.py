class DomainError(Exception):
    """Base for errors a route should translate into a 4xx response."""

    status_code = 400

    def __init__(self, detail: str, code: str | None = None):
        super().__init__(detail)
        self.detail = detail
        self.code = code


class NotFoundError(DomainError):
    status_code = 404


class ConflictError(DomainError):
    status_code = 400


class InvalidInputError(DomainError):
    status_code = 400


class AuthError(DomainError):
    status_code = 401


class ForbiddenError(DomainError):
    status_code = 403
