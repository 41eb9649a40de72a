"""Contains logic that decodes and validates warehouse file access tokens.

Validation only needs the warehouse private key and the token string, so it
usually runs inside the warehouse itself.
"""
from datetime import datetime, timezone

from jose.backends.base import Key

from models.helpers import EncryptionScheme

from schema.warehouse import DecodedToken

from security.envelope import decode_access_token as decode_envelope, decode_signed_token
from security.exceptions import AccessDeniedError
from security.helpers import decrypt_with_private_key


class TokenValidator:
    """Decodes access tokens and rejects expired ones. Holds no state between calls."""

    def __init__(self, encryption_scheme: EncryptionScheme = EncryptionScheme.RSA_OAEP):
        self.encryption_scheme = EncryptionScheme(encryption_scheme)

    def decode_access_token(self, token: str, private_key: str | Key) -> DecodedToken:
        """Decode and validate an access token.

        Args:
            token (str): The token string.
            private_key (str | Key): PEM encoded private key of the warehouse or an already loaded key.

        Raises:
            MalformedTokenError: Raised when the token cannot be decoded, decrypted or parsed.
            AccessDeniedError: Raised when the token has expired.

        Returns:
            DecodedToken: The warehouse name and the decrypted token content.
        """
        access_token = decode_envelope(token)

        signed_token = decode_signed_token(
            decrypt_with_private_key(private_key, access_token.signed_payload, self.encryption_scheme)
        )

        if signed_token.expires_at <= datetime.now(timezone.utc):
            raise AccessDeniedError("Access token has expired")

        return DecodedToken(
            warehouse_name=access_token.warehouse_name,
            file_id=signed_token.file_id,
            expires_at=signed_token.expires_at,
            salt=signed_token.salt,
        )


def decode_access_token(
    token: str, private_key: str | Key, encryption_scheme: EncryptionScheme = EncryptionScheme.RSA_OAEP
) -> DecodedToken:
    """Decode and validate an access token with a one-off `TokenValidator`."""
    return TokenValidator(encryption_scheme).decode_access_token(token, private_key)
