"""Application error types and codes."""

import inspect
from enum import Enum, IntEnum
from uuid import uuid4


class HttpStatusCode(IntEnum):
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    CONFLICT = 409
    PAYLOAD_TOO_LARGE = 413
    UNSUPPORTED_MEDIA_TYPE = 415
    INTERNAL_SERVER_ERROR = 500


class AppErrorCode(str, Enum):
    E_INTERNAL_ERROR = "E_INTERNAL_ERROR"
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_INVALID_PARAMS = "E_INVALID_PARAMS"

    # Access
    E_UNAUTHENTICATED = "E_UNAUTHENTICATED"
    E_SESSION_EXPIRED = "E_SESSION_EXPIRED"
    E_INVALID_ACCESS_CODE = "E_INVALID_ACCESS_CODE"
    E_INVALID_TRANSACTION_CODE = "E_INVALID_TRANSACTION_CODE"

    # Upload
    E_NO_FILE = "E_NO_FILE"
    E_UNSUPPORTED_MEDIA_TYPE = "E_UNSUPPORTED_MEDIA_TYPE"
    E_PAYLOAD_TOO_LARGE = "E_PAYLOAD_TOO_LARGE"
    E_STORAGE_FAILURE = "E_STORAGE_FAILURE"

    # Stream
    E_INVALID_DESTINATION_KEY = "E_INVALID_DESTINATION_KEY"
    E_STREAM_SESSION_NOT_FOUND = "E_STREAM_SESSION_NOT_FOUND"
    E_NO_VIDEO_FILE = "E_NO_VIDEO_FILE"
    E_NO_DESTINATION_KEYS = "E_NO_DESTINATION_KEYS"
    E_FILE_MISSING = "E_FILE_MISSING"
    E_PROCESS_FAILURE = "E_PROCESS_FAILURE"

    def __str__(self) -> str:
        return self.value


def _caller_info(depth: int) -> str:
    try:
        frame = inspect.stack()[depth]
    except IndexError:
        return "unknown"
    module = inspect.getmodule(frame.frame)
    module_name = module.__name__ if module and getattr(module, "__name__", None) else frame.filename
    return f"{module_name}:{frame.function}:{frame.lineno}"


class AppError(Exception):
    """Error raised by domain and API code, rendered as an ApiFailure envelope.

    The caller location is captured at construction so the exception handler can
    log where the error originated rather than where it was caught.
    """

    default_errcode: AppErrorCode = AppErrorCode.E_INTERNAL_ERROR
    default_errmesg: str = "We are sorry, an error occurred."
    default_status_code: int = HttpStatusCode.INTERNAL_SERVER_ERROR

    def __init__(
        self,
        errcode: AppErrorCode | str | None = None,
        errmesg: str | None = None,
        status_code: int | None = None,
    ):
        code = errcode if errcode is not None else self.default_errcode
        self.errcode: str = code.value if isinstance(code, Enum) else str(code)
        self.errmesg: str = errmesg or self.default_errmesg
        self.status_code: int = int(status_code or self.default_status_code)
        self.erresid: str = uuid4().hex[:10]
        self.caller_info: str = _caller_info(2)
        super().__init__(self.errmesg)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.errcode!r}, {self.errmesg!r}, {self.status_code})"


class UnauthenticatedError(AppError):
    default_errcode = AppErrorCode.E_UNAUTHENTICATED
    default_errmesg = "No session found"
    default_status_code = HttpStatusCode.UNAUTHORIZED


class InvalidParamsError(AppError):
    default_errcode = AppErrorCode.E_INVALID_PARAMS
    default_errmesg = "Invalid request data"
    default_status_code = HttpStatusCode.BAD_REQUEST


class InvalidDestinationKey(InvalidParamsError):
    default_errcode = AppErrorCode.E_INVALID_DESTINATION_KEY
    default_errmesg = "Invalid stream configuration"


class UnsupportedMediaTypeError(AppError):
    default_errcode = AppErrorCode.E_UNSUPPORTED_MEDIA_TYPE
    default_errmesg = "Only video files are allowed"
    default_status_code = HttpStatusCode.UNSUPPORTED_MEDIA_TYPE


class PayloadTooLargeError(AppError):
    default_errcode = AppErrorCode.E_PAYLOAD_TOO_LARGE
    default_errmesg = "File too large"
    default_status_code = HttpStatusCode.PAYLOAD_TOO_LARGE


class PreconditionFailedError(AppError):
    default_errcode = AppErrorCode.E_INVALID_REQUEST
    default_errmesg = "Precondition failed"
    default_status_code = HttpStatusCode.BAD_REQUEST


class StorageFailureError(AppError):
    default_errcode = AppErrorCode.E_STORAGE_FAILURE
    default_errmesg = "Upload failed"
    default_status_code = HttpStatusCode.INTERNAL_SERVER_ERROR


class ProcessFailureError(AppError):
    default_errcode = AppErrorCode.E_PROCESS_FAILURE
    default_errmesg = "Stream operation failed"
    default_status_code = HttpStatusCode.INTERNAL_SERVER_ERROR
