"""Encoding and decoding of the two layer warehouse token envelope.

A token is `base64(JSON{"w": <warehouse name>, "st": <ciphertext>})` where the
ciphertext decrypts to `JSON{"expiresAt": ..., "fileId": ..., "salt": ...}`.
Both JSON documents are written without whitespace and in that key order.
"""
import base64
import binascii

from pydantic import ValidationError

from schema.warehouse import AccessToken, SignedToken

from security.exceptions import MalformedTokenError


def encode_signed_token(signed_token: SignedToken) -> str:
    """Serializes the inner token layer to the JSON text that gets encrypted."""
    return signed_token.model_dump_json(by_alias=True)


def decode_signed_token(text: str) -> SignedToken:
    """Parses the decrypted inner token layer.

    Args:
        text (str): Decrypted JSON text.

    Raises:
        MalformedTokenError: Raised when the text is not a valid signed token.

    Returns:
        SignedToken: The parsed inner layer.
    """
    try:
        return SignedToken.model_validate_json(text)
    except ValidationError:
        #* Never chain the validation error, it echoes the decrypted input
        raise MalformedTokenError("Signed payload is not a valid signed token") from None


def encode_access_token(access_token: AccessToken) -> str:
    """Serializes the outer token layer and base64 encodes it into the token string."""
    data = access_token.model_dump_json(by_alias=True).encode("utf-8")
    return base64.b64encode(data).decode("ascii")


def decode_access_token(token: str) -> AccessToken:
    """Base64 decodes a token string and parses the outer token layer.

    Args:
        token (str): The token string.

    Raises:
        MalformedTokenError: Raised when the token is not base64 encoded JSON of an access token.

    Returns:
        AccessToken: The parsed outer layer.
    """
    # Tokens copied from an unencoded query string have their "+" turned into spaces
    token = token.strip().replace(" ", "+")

    try:
        data = base64.b64decode(token, validate=True)
        return AccessToken.model_validate_json(data.decode("utf-8"))
    except (binascii.Error, ValueError):
        raise MalformedTokenError("Access token is not a valid token") from None
