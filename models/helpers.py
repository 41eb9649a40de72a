"""Contains all models commonly used across different modules."""
from enum import Enum


class EncryptionScheme(str, Enum):
    """Enumeration of the RSA paddings a warehouse token can be encrypted with.

    Values are the JWA algorithm names understood by `python-jose`.
    """

    RSA_OAEP = "RSA-OAEP"  # OAEP with SHA-1 and MGF1-SHA-1
    RSA_OAEP_256 = "RSA-OAEP-256"  # OAEP with SHA-256 and MGF1-SHA-256
    RSA1_5 = "RSA1_5"  # PKCS#1 v1.5

    @property
    def max_message_overhead(self) -> int:
        """Number of bytes of every RSA block taken by the padding."""
        if self is EncryptionScheme.RSA1_5:
            return 11
        hash_length = 32 if self is EncryptionScheme.RSA_OAEP_256 else 20
        return 2 * hash_length + 2
