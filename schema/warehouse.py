"""Defines schema of the warehouse settings, tokens and related requests and responses"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from typing import Annotated, Optional

from models.helpers import EncryptionScheme


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC.

    Args:
        value (datetime): The datetime to normalise.

    Returns:
        datetime: An aware datetime in UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_js_isoformat(value: datetime) -> str:
    """Format `value` the way `Date.prototype.toISOString` does, e.g. `2024-01-31T10:00:00.000Z`."""
    value = ensure_utc(value)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


class RegisterOptions(BaseModel):
    """Options supplied by the host application to connect to a warehouse."""

    model_config = ConfigDict(frozen=True)

    api_key: Annotated[str, Field(min_length=1)]
    host: Annotated[str, Field(min_length=1)]  # Base URL of the warehouse
    retry_delay: Annotated[float, Field(default=10.0, ge=0)]  # Seconds between setup attempts
    max_attempts: Annotated[Optional[int], Field(default=None, ge=1)]  # None retries forever
    encryption_scheme: Annotated[EncryptionScheme, Field(default=EncryptionScheme.RSA_OAEP)]

    @field_validator("host")
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


class SetupInfo(BaseModel):
    """Setup information returned by the warehouse on `GET /setup/info`."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    public_key: Annotated[str, Field(alias="publicKey", min_length=1)]  # PEM encoded RSA public key
    warehouse_name: Annotated[str, Field(alias="warehouseName", min_length=1)]


class WarehouseSettings(BaseModel):
    """Settings used to issue tokens for the lifetime of the process."""

    model_config = ConfigDict(frozen=True)

    options: RegisterOptions
    setup_info: SetupInfo


class SignOptions(BaseModel):
    """Options describing the file a token should grant access to."""

    file_id: Annotated[str, Field(min_length=1)]
    expires_at: Annotated[Optional[datetime], Field(default=None)]

    @field_validator("expires_at")
    def normalise_expires_at(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None


class SignedToken(BaseModel):
    """Inner layer of an access token, encrypted with the warehouse public key."""

    model_config = ConfigDict(populate_by_name=True)

    expires_at: Annotated[datetime, Field(alias="expiresAt")]
    file_id: Annotated[str, Field(alias="fileId")]
    salt: str  # Random characters so equal payloads never encrypt alike

    @field_validator("expires_at")
    def normalise_expires_at(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @field_serializer("expires_at")
    def serialize_expires_at(self, value: datetime) -> str:
        return to_js_isoformat(value)


class AccessToken(BaseModel):
    """Outer layer of an access token. Base64 of its JSON is the token string."""

    model_config = ConfigDict(populate_by_name=True)

    warehouse_name: Annotated[str, Field(alias="w")]
    signed_payload: Annotated[str, Field(alias="st")]  # Base64 RSA ciphertext of a SignedToken


class DecodedToken(BaseModel):
    """Content of a validated access token."""

    warehouse_name: str
    file_id: str
    expires_at: datetime
    salt: str


class FileAccess(BaseModel):
    """Token and ready to use URL granting access to a warehouse file."""

    token: str
    url: str
    host: str


class FileAccessRequest(BaseModel):
    """Describes the structure of a file access request."""

    file_id: Annotated[str, Field(description="Identifier of the file in the warehouse", min_length=1)]
    expires_at: Annotated[
        Optional[datetime],
        Field(default=None, description="Expiry of the token. Defaults to 30 minutes from now"),
    ]


class DecodeTokenRequest(BaseModel):
    """Describes the structure of a token validation request."""

    token: Annotated[str, Field(min_length=1)]


class SetupStatusResponse(BaseModel):
    """Describes whether the warehouse setup information has been obtained."""

    ready: bool
    warehouse_name: Optional[str] = None
