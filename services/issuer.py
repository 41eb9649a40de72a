"""Service for issuing warehouse file access tokens."""

from datetime import datetime, timedelta, timezone

from typing import Optional

from jose.backends.base import Key

from schema.warehouse import (
    AccessToken,
    FileAccess,
    SignedToken,
    SignOptions,
    WarehouseSettings,
)

from security.envelope import encode_access_token, encode_signed_token
from security.exceptions import InvalidExpiryError
from security.helpers import encrypt_with_public_key, generate_salt, load_rsa_key

# Token settings
DEFAULT_TOKEN_EXPIRY = timedelta(minutes=30)
FILE_ACCESS_PATH = "/warehouse/file"


class TokenIssuer:
    """Issues encrypted, time bound tokens granting access to a single warehouse file."""

    def __init__(self, settings: WarehouseSettings, default_expiry: timedelta = DEFAULT_TOKEN_EXPIRY):
        self.settings = settings
        self.default_expiry = default_expiry
        self._public_key: Key = load_rsa_key(
            settings.setup_info.public_key, settings.options.encryption_scheme
        )

    @property
    def host(self) -> str:
        return self.settings.options.host

    def generate_signed_token(self, options: SignOptions) -> str:
        """Generate the token string for the file described by `options`.

        Args:
            options (SignOptions): File to grant access to and optional expiry.

        Raises:
            InvalidExpiryError: Raised when `options.expires_at` is not in the future.

        Returns:
            str: The base64 encoded token.
        """
        now = datetime.now(timezone.utc)

        if options.expires_at is not None and options.expires_at <= now:
            raise InvalidExpiryError("expires_at must be a future time")

        expires_at = options.expires_at or now + self.default_expiry

        signed_token = SignedToken(
            expires_at=expires_at,
            file_id=options.file_id,
            salt=generate_salt(),
        )

        access_token = AccessToken(
            warehouse_name=self.settings.setup_info.warehouse_name,
            signed_payload=encrypt_with_public_key(
                self._public_key,
                encode_signed_token(signed_token),
                self.settings.options.encryption_scheme,
            ),
        )

        return encode_access_token(access_token)

    def generate_file_access(self, file_id: str, expires_at: Optional[datetime] = None) -> FileAccess:
        """Generate a token and the URL the bearer can use to access the file.

        Args:
            file_id (str): Identifier of the file in the warehouse.
            expires_at (Optional[datetime], optional): Expiry of the token. Naive datetimes
                are read as UTC. Defaults to 30 minutes from now.

        Raises:
            InvalidExpiryError: Raised when `expires_at` is not in the future.

        Returns:
            FileAccess: The token, the access URL and the warehouse host.
        """
        token = self.generate_signed_token(SignOptions(file_id=file_id, expires_at=expires_at))

        return FileAccess(
            token=token,
            url=f"{self.host}{FILE_ACCESS_PATH}?token={token}",
            host=self.host,
        )
