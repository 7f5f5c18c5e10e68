"""HTTP-aware error types raised by the services and routes."""

from fastapi import HTTPException, status


class ValidationError(HTTPException):
    def __init__(self, detail: str = 'Validation failed'):
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class AuthenticationError(HTTPException):
    def __init__(self, detail: str = 'Not authenticated'):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={'WWW-Authenticate': 'Bearer'},
        )


class ForbiddenError(HTTPException):
    def __init__(self, detail: str = 'Not allowed'):
        super().__init__(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


class NotFoundError(HTTPException):
    def __init__(self, detail: str = 'Not found'):
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class ConflictError(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class InvalidStateError(ConflictError):
    """An appointment action was attempted from a status that does not allow it."""


class RateLimitError(HTTPException):
    def __init__(self, retry_after: int):
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail='Too many attempts, please try again later.',
            headers={'Retry-After': str(retry_after)},
        )


class DatabaseUnavailableError(HTTPException):
    def __init__(self):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Database unavailable. Verify DATABASE_URL and database credentials.',
        )
