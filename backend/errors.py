# backend/errors.py
"""Error taxonomy shared by the store, the Drive layer and the HTTP routes.

Every error carries the HTTP status it maps to; ``main.py`` renders them as
``{"message": ...}``.
"""
from typing import Optional


class ReceiptVaultError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class NotAuthenticated(ReceiptVaultError):
    status_code = 401
    message = "Not authenticated"


class AccessDenied(ReceiptVaultError):
    status_code = 403
    message = "Access denied"


class NotFound(ReceiptVaultError):
    status_code = 404
    message = "Not found"


class BadRequest(ReceiptVaultError):
    status_code = 400
    message = "Bad request"


class UnsupportedFormat(BadRequest):
    message = "Uploaded file is not a supported image"


class PayloadTooLarge(ReceiptVaultError):
    status_code = 413
    message = "File too large"


class UpstreamFailure(ReceiptVaultError):
    """Google Drive or the OAuth provider failed. Never retried."""
    status_code = 500
    message = "Upstream service failure"


class RemoteUnavailable(UpstreamFailure):
    message = "Google Drive is unavailable"


class QuotaExceeded(UpstreamFailure):
    message = "Google Drive storage quota exceeded"
