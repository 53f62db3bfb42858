"""
Domain error taxonomy.

Every synchronous failure a route can produce is one of these classes. The
exception handler registered in main.py renders them into the uniform
ErrorResponse envelope, so services raise them directly and never build
HTTP responses themselves.

    DocExtractError                    500  INTERNAL_ERROR
    ├── InvalidRequestError            400  VALIDATION_ERROR
    │   ├── UnsupportedMediaTypeError  400  UNSUPPORTED_FILE_TYPE
    │   └── PayloadTooLargeError       413  FILE_TOO_LARGE
    ├── AuthenticationRequiredError    401  AUTHENTICATION_REQUIRED
    │   └── InvalidCredentialsError    401  INVALID_CREDENTIALS
    ├── AuthorizationDeniedError       403  FORBIDDEN
    │   └── OwnerOnlyError             403  OWNER_ONLY
    ├── NotFoundError                  404  NOT_FOUND
    │   ├── ExtractionNotFoundError    404  EXTRACTION_NOT_FOUND
    │   └── UserNotFoundError          404  USER_NOT_FOUND
    ├── ConflictError                  409  CONFLICT
    │   ├── AlreadySharedError         400  ALREADY_SHARED
    │   └── EmailAlreadyRegisteredError 409 EMAIL_ALREADY_REGISTERED
    └── ExtractionFailureError         never rendered; background task only
        └── PdfExtractionError
"""

from __future__ import annotations


class DocExtractError(Exception):
    """Base class for all application errors."""

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"
    default_message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None, *, field: str | None = None) -> None:
        self.message = message or self.default_message
        self.field = field
        super().__init__(self.message)


class InvalidRequestError(DocExtractError):
    status_code = 400
    error_code = "VALIDATION_ERROR"
    default_message = "Invalid request."


class UnsupportedMediaTypeError(InvalidRequestError):
    error_code = "UNSUPPORTED_FILE_TYPE"
    default_message = "Invalid file type. Only PDF, TXT, and DOCX files are allowed."


class PayloadTooLargeError(InvalidRequestError):
    status_code = 413
    error_code = "FILE_TOO_LARGE"
    default_message = "Uploaded file exceeds the maximum allowed size."


class AuthenticationRequiredError(DocExtractError):
    status_code = 401
    error_code = "AUTHENTICATION_REQUIRED"
    default_message = "Authentication required"


class InvalidCredentialsError(AuthenticationRequiredError):
    error_code = "INVALID_CREDENTIALS"
    default_message = "Invalid credentials"


class AuthorizationDeniedError(DocExtractError):
    status_code = 403
    error_code = "FORBIDDEN"
    default_message = "Insufficient permissions."


class OwnerOnlyError(AuthorizationDeniedError):
    error_code = "OWNER_ONLY"
    default_message = "Only the owner can perform this action"


class NotFoundError(DocExtractError):
    status_code = 404
    error_code = "NOT_FOUND"
    default_message = "Resource not found"


class ExtractionNotFoundError(NotFoundError):
    error_code = "EXTRACTION_NOT_FOUND"
    default_message = "Extraction not found"


class UserNotFoundError(NotFoundError):
    error_code = "USER_NOT_FOUND"
    default_message = "User not found"


class ConflictError(DocExtractError):
    status_code = 409
    error_code = "CONFLICT"
    default_message = "Conflicting state."


class AlreadySharedError(ConflictError):
    # Duplicate shares answer 400, not 409, to keep the existing client contract
    status_code = 400
    error_code = "ALREADY_SHARED"
    default_message = "Extraction already shared with this user"


class EmailAlreadyRegisteredError(ConflictError):
    error_code = "EMAIL_ALREADY_REGISTERED"
    default_message = "User already exists"


class ExtractionFailureError(DocExtractError):
    """Raised inside the background pipeline; surfaces only as status=failed."""

    error_code = "EXTRACTION_FAILED"
    default_message = "Text extraction failed"


class PdfExtractionError(ExtractionFailureError):
    error_code = "PDF_EXTRACTION_FAILED"
    default_message = "PDF text extraction failed"
