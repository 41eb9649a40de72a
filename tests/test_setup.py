"""Unit tests for the warehouse setup bootstrap and initialization barrier."""

import asyncio
import time

from unittest.mock import patch

import httpx
import pytest

from schema.warehouse import RegisterOptions
from security.exceptions import SetupUnavailableError
from services.setup import SetupBarrier, SetupBootstrapper, register, register_async


class MockAuthority:
    """Mock warehouse authority that fails a number of times before answering."""

    def __init__(self, public_key: str, failures: int = 0, failure: str = "status"):
        self.public_key = public_key
        self.failures = failures
        self.failure = failure
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if len(self.requests) <= self.failures:
            if self.failure == "network":
                raise httpx.ConnectError("Connection refused", request=request)
            if self.failure == "null":
                return httpx.Response(200, content=b"null", headers={"content-type": "application/json"})
            if self.failure == "bad_key":
                return httpx.Response(200, json={"publicKey": "not a key", "warehouseName": "central-warehouse"})
            if self.failure == "not_json":
                return httpx.Response(200, text="<html>maintenance</html>")
            return httpx.Response(503, json={"detail": "unavailable"})

        return httpx.Response(200, json={"publicKey": self.public_key, "warehouseName": "central-warehouse"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def _options(retry_delay: float = 0.01, max_attempts=None) -> RegisterOptions:
    return RegisterOptions(
        api_key="test-api-key",
        host="https://warehouse.example.com/",
        retry_delay=retry_delay,
        max_attempts=max_attempts,
    )


class TestSetupBootstrapper:
    """Test fetching the setup information."""

    @pytest.mark.asyncio
    async def test_fetch_on_first_attempt(self, public_key) -> None:
        authority = MockAuthority(public_key)

        with patch("services.setup.logfire") as mock_logfire:
            setup_info = await SetupBootstrapper(_options(), transport=authority.transport).fetch()

        assert setup_info.public_key == public_key
        assert setup_info.warehouse_name == "central-warehouse"
        assert mock_logfire.warn.call_count == 0
        mock_logfire.info.assert_called_once()

    @pytest.mark.asyncio
    async def test_request_path_and_api_key_header(self, public_key) -> None:
        authority = MockAuthority(public_key)

        await SetupBootstrapper(_options(), transport=authority.transport).fetch()

        request = authority.requests[0]
        assert request.method == "GET"
        assert str(request.url) == "https://warehouse.example.com/setup/info"
        assert request.headers["api-key"] == "test-api-key"

    @pytest.mark.asyncio
    async def test_retries_until_success(self, public_key) -> None:
        failures = 3
        retry_delay = 0.05
        authority = MockAuthority(public_key, failures=failures)

        with patch("services.setup.logfire") as mock_logfire:
            started = time.monotonic()
            setup_info = await SetupBootstrapper(
                _options(retry_delay=retry_delay), transport=authority.transport
            ).fetch()
            elapsed = time.monotonic() - started

        assert setup_info.warehouse_name == "central-warehouse"
        assert len(authority.requests) == failures + 1
        assert mock_logfire.warn.call_count == failures
        assert elapsed >= failures * retry_delay * 0.9

    @pytest.mark.asyncio
    @pytest.mark.parametrize("failure", ["network", "null", "bad_key", "not_json", "status"])
    async def test_every_failure_kind_is_retried(self, public_key, failure) -> None:
        authority = MockAuthority(public_key, failures=2, failure=failure)

        with patch("services.setup.logfire") as mock_logfire:
            setup_info = await SetupBootstrapper(_options(), transport=authority.transport).fetch()

        assert setup_info.public_key == public_key
        assert mock_logfire.warn.call_count == 2

    @pytest.mark.asyncio
    async def test_retry_interval_is_fixed(self, public_key) -> None:
        delays: list[float] = []

        async def record_sleep(delay: float) -> None:
            delays.append(delay)

        authority = MockAuthority(public_key, failures=4)

        await SetupBootstrapper(
            _options(retry_delay=7.5), transport=authority.transport, sleep=record_sleep
        ).fetch()

        assert delays == [7.5, 7.5, 7.5, 7.5]

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self, public_key) -> None:
        authority = MockAuthority(public_key, failures=100)

        with patch("services.setup.logfire") as mock_logfire:
            with pytest.raises(SetupUnavailableError):
                await SetupBootstrapper(_options(max_attempts=3), transport=authority.transport).fetch()

        assert len(authority.requests) == 3
        assert mock_logfire.warn.call_count == 3


class TestSetupBarrier:
    """Test the one shot initialization barrier."""

    @pytest.mark.asyncio
    async def test_wait_returns_settings(self, public_key) -> None:
        options = _options()
        barrier = SetupBarrier(options, SetupBootstrapper(options, transport=MockAuthority(public_key, 2).transport))

        assert not barrier.ready
        with pytest.raises(SetupUnavailableError):
            barrier.settings

        settings = await barrier.wait()

        assert barrier.ready
        assert barrier.settings is settings
        assert settings.options is options
        assert settings.setup_info.warehouse_name == "central-warehouse"

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, public_key) -> None:
        options = _options()
        barrier = SetupBarrier(options, SetupBootstrapper(options, transport=MockAuthority(public_key).transport))

        assert barrier.start() is barrier.start()
        await barrier.wait()

    @pytest.mark.asyncio
    async def test_wait_timeout_keeps_bootstrap_running(self, public_key) -> None:
        options = _options(retry_delay=0.01)
        authority = MockAuthority(public_key, failures=10**9)
        barrier = SetupBarrier(options, SetupBootstrapper(options, transport=authority.transport))

        with pytest.raises(asyncio.TimeoutError):
            await barrier.wait(timeout=0.05)

        attempts = len(authority.requests)
        await asyncio.sleep(0.05)

        assert len(authority.requests) > attempts
        barrier.cancel()

    @pytest.mark.asyncio
    async def test_cancel_stops_bootstrap(self, public_key) -> None:
        options = _options(retry_delay=0.01)
        authority = MockAuthority(public_key, failures=10**9)
        barrier = SetupBarrier(options, SetupBootstrapper(options, transport=authority.transport))
        barrier.start()
        await asyncio.sleep(0.03)

        barrier.cancel()

        with pytest.raises(SetupUnavailableError):
            await barrier.wait()
        attempts = len(authority.requests)
        await asyncio.sleep(0.03)
        assert len(authority.requests) == attempts
        assert not barrier.ready

    @pytest.mark.asyncio
    async def test_start_restarts_cancelled_bootstrap(self, public_key) -> None:
        options = _options(retry_delay=0.01)
        authority = MockAuthority(public_key, failures=10**9)
        barrier = SetupBarrier(options, SetupBootstrapper(options, transport=authority.transport))
        first = barrier.start()
        await asyncio.sleep(0.03)
        barrier.cancel()

        with pytest.raises(SetupUnavailableError):
            await barrier.wait()

        authority.failures = 0
        second = barrier.start()
        settings = await barrier.wait()

        assert second is not first
        assert barrier.start() is second
        assert settings.setup_info.warehouse_name == "central-warehouse"

    @pytest.mark.asyncio
    async def test_failed_bootstrap_is_raised_to_waiters(self, public_key) -> None:
        options = _options(max_attempts=2)
        barrier = SetupBarrier(
            options, SetupBootstrapper(options, transport=MockAuthority(public_key, failures=5).transport)
        )

        with pytest.raises(SetupUnavailableError):
            await barrier.wait()


class TestRegister:
    """Test the explicit registration helpers."""

    @pytest.mark.asyncio
    async def test_register(self, public_key) -> None:
        authority = MockAuthority(public_key)

        settings = await register(_options(), transport=authority.transport)

        assert settings.setup_info.public_key == public_key
        assert settings.options.host == "https://warehouse.example.com"

    @pytest.mark.asyncio
    async def test_register_async(self, public_key) -> None:
        authority = MockAuthority(public_key, failures=1)

        async def options_factory() -> RegisterOptions:
            return _options()

        settings = await register_async(options_factory, transport=authority.transport)

        assert settings.setup_info.warehouse_name == "central-warehouse"
        assert len(authority.requests) == 2

    @pytest.mark.asyncio
    async def test_register_stops_retrying_when_cancelled(self, public_key) -> None:
        authority = MockAuthority(public_key, failures=10**9)

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(register(_options(retry_delay=0.01), transport=authority.transport), 0.05)

        attempts = len(authority.requests)
        await asyncio.sleep(0.1)

        assert len(authority.requests) == attempts
