"""
Shared pytest fixtures for the warehouse token test suite.

RSA keys are generated once per session; the fixtures build settings,
issuers and hand-made tokens on top of them.
"""

import logfire
import pytest

from datetime import datetime
from typing import Callable

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from models.helpers import EncryptionScheme
from schema.warehouse import AccessToken, RegisterOptions, SetupInfo, SignedToken, WarehouseSettings
from security.envelope import encode_access_token, encode_signed_token
from security.helpers import encrypt_with_public_key, generate_salt
from services.issuer import TokenIssuer
from services.validation import TokenValidator

logfire.configure(send_to_logfire=False, console=False)

WAREHOUSE_NAME = "central-warehouse"
WAREHOUSE_HOST = "https://warehouse.example.com"


def _generate_key_pair() -> tuple[str, str]:
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("ascii")
    return private_pem, public_pem


@pytest.fixture(scope="session")
def key_pair() -> tuple[str, str]:
    """Provide a (private PEM, public PEM) RSA key pair."""
    return _generate_key_pair()


@pytest.fixture(scope="session")
def other_key_pair() -> tuple[str, str]:
    """Provide a second, unrelated RSA key pair."""
    return _generate_key_pair()


@pytest.fixture
def private_key(key_pair) -> str:
    return key_pair[0]


@pytest.fixture
def public_key(key_pair) -> str:
    return key_pair[1]


@pytest.fixture
def register_options() -> RegisterOptions:
    return RegisterOptions(api_key="test-api-key", host=WAREHOUSE_HOST, retry_delay=0.01)


@pytest.fixture
def setup_info(public_key) -> SetupInfo:
    return SetupInfo(public_key=public_key, warehouse_name=WAREHOUSE_NAME)


@pytest.fixture
def warehouse_settings(register_options, setup_info) -> WarehouseSettings:
    return WarehouseSettings(options=register_options, setup_info=setup_info)


@pytest.fixture
def issuer(warehouse_settings) -> TokenIssuer:
    return TokenIssuer(warehouse_settings)


@pytest.fixture
def validator() -> TokenValidator:
    return TokenValidator()


@pytest.fixture
def make_token(public_key) -> Callable[..., str]:
    """Build a token by hand, bypassing the issuer checks (e.g. for expired tokens)."""

    def _make_token(
        file_id: str,
        expires_at: datetime,
        warehouse_name: str = WAREHOUSE_NAME,
        scheme: EncryptionScheme = EncryptionScheme.RSA_OAEP,
    ) -> str:
        signed_token = SignedToken(expires_at=expires_at, file_id=file_id, salt=generate_salt())
        return encode_access_token(
            AccessToken(
                warehouse_name=warehouse_name,
                signed_payload=encrypt_with_public_key(public_key, encode_signed_token(signed_token), scheme),
            )
        )

    return _make_token
