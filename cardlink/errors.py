"""
Error Taxonomy

Domain exceptions raised by the registry, identity, engagement and
analytics services. Each carries the HTTP status the API layer maps it to.
"""

from typing import Any, Dict, Optional


class CardlinkError(Exception):
    """Base class for all domain errors"""

    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"success": False, "error": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(CardlinkError):
    """Malformed or missing input"""
    status_code = 400


class AuthError(CardlinkError):
    """Invalid, expired or forged credential"""
    status_code = 401


class ConflictError(CardlinkError):
    """Uniqueness invariant violated (duplicate link, slug taken, already linked)"""
    status_code = 409


class SlugMismatchError(ConflictError):
    """Registration link does not match the account's current slug"""
    status_code = 403


class LinkMismatchError(ConflictError):
    """Identity mapping points at an account that no longer holds the identity"""
    status_code = 403


class NotFoundError(CardlinkError):
    """Unknown account, slug or mapping"""
    status_code = 404


class StoreError(CardlinkError):
    """Underlying store operation failed"""
    status_code = 500


class TrackingError(StoreError):
    """Engagement batch could not be committed"""
