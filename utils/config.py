"""Loads the warehouse settings from the environment (and a `.env` file when present)."""

import os

from dotenv import load_dotenv

from typing import Optional

from pydantic import ValidationError

from models.helpers import EncryptionScheme

from schema.warehouse import RegisterOptions

from security.exceptions import ConfigurationError

load_dotenv()

# Defaults
DEFAULT_RETRY_DELAY_MS = 10_000


def load_register_options() -> RegisterOptions:
    """Build the warehouse register options from environment variables.

    - `WAREHOUSE_API_KEY` (required)
    - `WAREHOUSE_HOST` (required)
    - `WAREHOUSE_CONFIG_RETRY_DELAY` in milliseconds, defaults to 10000
    - `WAREHOUSE_SETUP_MAX_ATTEMPTS`, unset to retry forever
    - `WAREHOUSE_ENCRYPTION_SCHEME`, one of `RSA-OAEP` (default), `RSA-OAEP-256`, `RSA1_5`

    Raises:
        ConfigurationError: Raised when a required variable is missing or a value is invalid.

    Returns:
        RegisterOptions: The register options.
    """
    api_key = os.getenv("WAREHOUSE_API_KEY")
    host = os.getenv("WAREHOUSE_HOST")

    if not api_key:
        raise ConfigurationError("Failed to retrieve the warehouse API key (WAREHOUSE_API_KEY)")
    if not host:
        raise ConfigurationError("Failed to retrieve the warehouse host (WAREHOUSE_HOST)")

    try:
        retry_delay_ms = int(os.getenv("WAREHOUSE_CONFIG_RETRY_DELAY", DEFAULT_RETRY_DELAY_MS))
        max_attempts = os.getenv("WAREHOUSE_SETUP_MAX_ATTEMPTS")

        return RegisterOptions(
            api_key=api_key,
            host=host,
            retry_delay=retry_delay_ms / 1000,
            max_attempts=int(max_attempts) if max_attempts else None,
            encryption_scheme=EncryptionScheme(
                os.getenv("WAREHOUSE_ENCRYPTION_SCHEME", EncryptionScheme.RSA_OAEP.value)
            ),
        )
    except (ValueError, ValidationError) as e:
        raise ConfigurationError(f"Invalid warehouse configuration: {e}") from e


def load_private_key() -> Optional[str]:
    """Return the warehouse private key (`WAREHOUSE_PRIVATE_KEY`) used to validate tokens, if any."""
    private_key = os.getenv("WAREHOUSE_PRIVATE_KEY")

    # Keys kept on a single line in .env files use escaped newlines
    return private_key.replace("\\n", "\n") if private_key else None
