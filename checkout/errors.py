from starlette import status


class AppError(Exception):
    """Application error carrying the HTTP status it should be reported with."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class InvalidPaymentTransition(AppError):
    status_code = status.HTTP_409_CONFLICT


class ProviderError(AppError):
    """A payment provider call failed. The message never carries provider detail."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
