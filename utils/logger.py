"""Universal logfire setup for the application."""

import os

import logfire


def configure_logging() -> None:
    """Configure logfire. Logs are only sent to logfire when `LOGFIRE_WRITE_TOKEN` is set."""
    logfire.configure(
        token=os.getenv("LOGFIRE_WRITE_TOKEN"),
        service_name="warehouse-tokens",
        send_to_logfire="if-token-present",
    )


def instrument_libraries():
    """Instrument common libraries for better observability."""
    logfire.instrument_httpx()
