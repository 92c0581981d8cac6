"""
API Schemas

Request and response bodies. Everything on the wire uses camelCase keys;
request bodies are validated before any handler runs.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# =============================================================================
# REQUESTS
# =============================================================================

class RegisterSlugRequest(ApiModel):
    account_id: str = Field(min_length=1)


class LinkIdentityRequest(ApiModel):
    account_id: str = Field(min_length=1)
    slug: str = Field(min_length=1)
    external_id: str = Field(min_length=1)
    email: str = Field(min_length=3)
    proof: str = Field(min_length=1)
    display_name: Optional[str] = None
    photo_url: Optional[str] = None


class LoginRequest(ApiModel):
    proof: str = Field(min_length=1)


class ViewEventRequest(ApiModel):
    account_id: str = Field(min_length=1)
    slug: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class ContactSaveRequest(ApiModel):
    account_id: str = Field(min_length=1)
    metadata: Optional[Dict[str, Any]] = None


# =============================================================================
# RESPONSES
# =============================================================================

class PublicProfile(ApiModel):
    """Account fields shown on a public card"""
    id: str
    full_name: Optional[str] = None
    display_name: Optional[str] = None
    email_address: Optional[str] = None
    primary_contact_number: Optional[str] = None
    designation: Optional[str] = None
    company_name: Optional[str] = None
    profile_picture: Optional[str] = None
    public_url: Optional[str] = None
    url_slug: Optional[str] = None
    google_photo_url: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AccountSummary(PublicProfile):
    """Listing row"""
    total_views: int = 0
    total_contact_saves: int = 0
    is_google_linked: bool = False


class AccountListResponse(ApiModel):
    success: bool = True
    items: List[AccountSummary]
    has_more: bool
    next_cursor: Optional[str] = None


class SlugResponse(ApiModel):
    success: bool = True
    account_id: str
    slug: str
    public_url: str


class ResolveSlugResponse(ApiModel):
    success: bool = True
    slug: str
    account: PublicProfile


class DeactivateSlugResponse(ApiModel):
    success: bool = True
    slug: str
    active: bool


class LinkResponse(ApiModel):
    success: bool = True
    account_id: str
    linked: bool
    url_slug: str
    google_email: str


class LoginResponse(ApiModel):
    success: bool = True
    token: str
    google_email: Optional[str] = None
    account: PublicProfile


class TokenClaims(ApiModel):
    account_id: str
    email: str
    role: str
    issued_at_epoch_ms: int


class VerifyResponse(ApiModel):
    valid: bool
    claims: TokenClaims


class TrackResponse(ApiModel):
    success: bool = True
    tracked: bool
    timestamp: datetime
