from typing import Optional


class AutoBriefError(Exception):
    pass


class IntakeError(AutoBriefError):
    """Synchronous upload rejection carrying the HTTP status and error code."""

    code = "internal_error"
    http_status = 400

    def __init__(self, message: str, *, code: Optional[str] = None) -> None:
        super().__init__(message)
        if code:
            self.code = code


class MissingFileError(IntakeError):
    code = "no_file"
    http_status = 400


class InvalidMediaTypeError(IntakeError):
    code = "invalid_type"
    http_status = 400


class FileTooLargeError(IntakeError):
    code = "too_large"
    http_status = 413


class QuotaExceededError(IntakeError):
    code = "quota_exceeded"
    http_status = 403


class AnonymousUploadError(IntakeError):
    code = "not_authenticated"
    http_status = 401


class EnqueueError(IntakeError):
    code = "internal_error"
    http_status = 500


class ExtractionError(AutoBriefError):
    pass


class UnsupportedMediaType(ExtractionError):
    pass


class SummarizationError(AutoBriefError):
    pass


class JobNotFound(AutoBriefError):
    pass


class InvalidTransition(AutoBriefError):
    pass


class JobAlreadyClaimed(InvalidTransition):
    pass


class PaymentRejected(AutoBriefError):
    pass


class InvalidChatRequest(AutoBriefError):
    pass
