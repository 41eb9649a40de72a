"""Contains all RSA and randomness helper functions used by warehouse tokens
"""
import base64
import binascii
import secrets
import string

from jose import jwk
from jose.backends.base import Key
from jose.exceptions import JWEError, JWKError

from models.helpers import EncryptionScheme

from security.exceptions import MalformedTokenError

# Salt settings
SALT_LENGTH = 24
SALT_ALPHABET = string.ascii_letters + string.digits


def generate_salt(length: int = SALT_LENGTH) -> str:
    """Generate a cryptographically secure random salt.

    Args:
        length (int, optional): Number of characters. Defaults to SALT_LENGTH.

    Returns:
        str: The generated salt.
    """
    return "".join(secrets.choice(SALT_ALPHABET) for _ in range(length))


def load_rsa_key(pem: str, scheme: EncryptionScheme = EncryptionScheme.RSA_OAEP) -> Key:
    """Builds an RSA key able to encrypt (public) or decrypt (private) with `scheme`.

    Args:
        pem (str): PEM encoded public or private RSA key.
        scheme (EncryptionScheme, optional): Padding to use. Defaults to RSA-OAEP.

    Raises:
        JWKError: Raised when `pem` is not a usable RSA key.

    Returns:
        Key: The constructed key.
    """
    return jwk.construct(pem, algorithm=EncryptionScheme(scheme).value)


def _block_size(key: Key) -> int:
    """Size in bytes of a single RSA ciphertext block for `key`."""
    return (key.prepared_key.key_size + 7) // 8


def encrypt_with_public_key(
    public_key: str | Key, text: str, scheme: EncryptionScheme = EncryptionScheme.RSA_OAEP
) -> str:
    """Encrypts `text` with an RSA public key.

    Plaintext longer than one RSA block is split into chunks of the maximum
    message length of the scheme and the ciphertext blocks are concatenated.

    Args:
        public_key (str | Key): PEM encoded public key or an already loaded key.
        text (str): The text to encrypt.
        scheme (EncryptionScheme, optional): Padding to use. Defaults to RSA-OAEP.

    Raises:
        JWKError: Raised when the public key cannot be loaded.
        JWEError: Raised when encryption fails.

    Returns:
        str: The base64 encoded ciphertext.
    """
    key = load_rsa_key(public_key, scheme) if isinstance(public_key, str) else public_key
    block_size = _block_size(key)
    chunk_size = block_size - EncryptionScheme(scheme).max_message_overhead

    data = text.encode("utf-8")
    chunks = [data[i : i + chunk_size] for i in range(0, len(data), chunk_size)] or [b""]

    ciphertext = b"".join(key.wrap_key(chunk) for chunk in chunks)
    return base64.b64encode(ciphertext).decode("ascii")


def decrypt_with_private_key(
    private_key: str | Key, encrypted_text: str, scheme: EncryptionScheme = EncryptionScheme.RSA_OAEP
) -> str:
    """Decrypts text produced by `encrypt_with_public_key`.

    Args:
        private_key (str | Key): PEM encoded private key or an already loaded key.
        encrypted_text (str): The base64 encoded ciphertext.
        scheme (EncryptionScheme, optional): Padding to use. Defaults to RSA-OAEP.

    Raises:
        MalformedTokenError: Raised when the ciphertext cannot be decrypted with the key.

    Returns:
        str: The decrypted text.
    """
    try:
        key = load_rsa_key(private_key, scheme) if isinstance(private_key, str) else private_key
        ciphertext = base64.b64decode(encrypted_text, validate=True)
    except (JWKError, binascii.Error, ValueError):
        raise MalformedTokenError("Signed payload could not be decrypted") from None

    block_size = _block_size(key)
    if not ciphertext or len(ciphertext) % block_size:
        raise MalformedTokenError("Signed payload has an invalid length")

    try:
        plaintext = b"".join(
            key.unwrap_key(ciphertext[i : i + block_size])
            for i in range(0, len(ciphertext), block_size)
        )
        return plaintext.decode("utf-8")
    except (JWEError, UnicodeDecodeError):
        raise MalformedTokenError("Signed payload could not be decrypted") from None
