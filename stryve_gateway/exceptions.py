from fastapi import Request, status
from fastapi.responses import JSONResponse

from stryve_gateway.logging import get_logger


class AppError(Exception):
    """Base application error rendered as a JSON error body."""

    def __init__(
        self,
        message: str,
        code: str = "ERROR",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        super().__init__(message)


class NotConfiguredError(AppError):
    def __init__(self, message: str = "Stryve is not configured. Please set your API key in the app settings."):
        super().__init__(message, code="NOT_CONFIGURED", status_code=status.HTTP_400_BAD_REQUEST)


class InvalidArgumentError(AppError):
    def __init__(self, message: str = "Invalid argument"):
        super().__init__(message, code="INVALID_ARGUMENT", status_code=status.HTTP_400_BAD_REQUEST)


class InvalidCallbackError(AppError):
    def __init__(self, message: str = "Missing parameters."):
        super().__init__(message, code="INVALID_CALLBACK", status_code=status.HTTP_400_BAD_REQUEST)


class UnauthorizedError(AppError):
    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, code="UNAUTHORIZED", status_code=status.HTTP_401_UNAUTHORIZED)


class RecordNotFoundError(AppError):
    def __init__(self, message: str = "Could not find payment record."):
        super().__init__(message, code="NOT_FOUND", status_code=status.HTTP_404_NOT_FOUND)


class StryveApiError(AppError):
    """Stryve rejected a call or could not be reached. Carries the upstream message."""

    code = "STRYVE_ERROR"

    def __init__(self, message: str):
        super().__init__(message, code=self.code, status_code=status.HTTP_502_BAD_GATEWAY)


class AuthenticationError(StryveApiError):
    code = "STRYVE_AUTHENTICATION_FAILED"


class OrderCreationError(StryveApiError):
    code = "STRYVE_ORDER_CREATION_FAILED"


class VerificationError(StryveApiError):
    code = "STRYVE_VERIFICATION_FAILED"


class SettlementError(AppError):
    def __init__(self, message: str):
        super().__init__(message, code="SETTLEMENT_FAILED", status_code=status.HTTP_502_BAD_GATEWAY)


async def app_exception_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "code": exc.code},
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    get_logger(__name__).exception("unhandled_exception", path=request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Internal server error", "code": "INTERNAL_ERROR"},
    )
