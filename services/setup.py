"""Service for obtaining the warehouse setup information before tokens can be issued."""

import asyncio

import httpx
import logfire

from typing import Awaitable, Callable, Optional

from controllers.warehouse import send_setup_info_request

from schema.warehouse import RegisterOptions, SetupInfo, WarehouseSettings

from security.exceptions import SetupUnavailableError
from security.helpers import load_rsa_key


class SetupBootstrapper:
    """Fetches the warehouse setup information, retrying at a fixed interval until it succeeds."""

    def __init__(
        self,
        options: RegisterOptions,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.options = options
        self.transport = transport
        self.sleep = sleep

    async def fetch(self) -> SetupInfo:
        """Fetch the setup information of the warehouse.

        Every failure (network error, non 2xx status, malformed body or a public key
        that cannot be loaded) is logged as a warning and retried after
        `options.retry_delay` seconds. Without `options.max_attempts` this never
        gives up; cancel the surrounding task to stop it.

        Raises:
            SetupUnavailableError: Raised when `options.max_attempts` attempts all failed.

        Returns:
            SetupInfo: The setup information of the warehouse.
        """
        attempts = 0

        async with httpx.AsyncClient(transport=self.transport) as client:
            while True:
                attempts += 1
                try:
                    setup_info = await send_setup_info_request(
                        client, self.options.host, self.options.api_key
                    )
                    #* The key must be usable before anything gets issued with it
                    load_rsa_key(setup_info.public_key, self.options.encryption_scheme)
                except Exception as e:
                    logfire.warn(
                        f"Cannot obtain setup information (attempt {attempts}): {type(e).__name__}"
                    )
                else:
                    logfire.info(
                        f"Obtained Warehouse setup information for: {setup_info.warehouse_name}"
                    )
                    return setup_info

                if self.options.max_attempts is not None and attempts >= self.options.max_attempts:
                    raise SetupUnavailableError(
                        f"Cannot obtain setup information after {attempts} attempts"
                    )

                # Wait before a retry is made
                await self.sleep(self.options.retry_delay)


class SetupBarrier:
    """Initialization barrier around a `SetupBootstrapper`.

    The bootstrap runs as a background task. Callers await `wait()` for the
    resulting `WarehouseSettings` or stop it with `cancel()`. Once cancelled,
    `start()` schedules a fresh bootstrap.
    """

    def __init__(self, options: RegisterOptions, bootstrapper: Optional[SetupBootstrapper] = None):
        self.options = options
        self.bootstrapper = bootstrapper or SetupBootstrapper(options)
        self._task: Optional[asyncio.Task] = None
        self._settings: Optional[WarehouseSettings] = None

    @property
    def ready(self) -> bool:
        return self._settings is not None

    @property
    def settings(self) -> WarehouseSettings:
        """The resolved settings.

        Raises:
            SetupUnavailableError: Raised when the setup has not completed yet.
        """
        if self._settings is None:
            raise SetupUnavailableError("Warehouse setup information has not been obtained yet")
        return self._settings

    def start(self) -> asyncio.Task:
        """Schedule the bootstrap on the running event loop.

        Calling it again returns the same task, unless that task was cancelled.
        """
        if self._task is None or self._task.cancelled():
            self._task = asyncio.get_running_loop().create_task(self._run())
            self._task.add_done_callback(self._log_failure)
        return self._task

    async def wait(self, timeout: Optional[float] = None) -> WarehouseSettings:
        """Wait for the bootstrap to complete, starting it if it never ran.

        A cancelled bootstrap is not restarted here, call `start()` for that.

        Args:
            timeout (Optional[float], optional): Seconds to wait. The bootstrap keeps running
                after a timeout. Defaults to None (wait forever).

        Raises:
            asyncio.TimeoutError: Raised when `timeout` elapses first.
            SetupUnavailableError: Raised when the bootstrap was cancelled or gave up.

        Returns:
            WarehouseSettings: The settings built from the setup information.
        """
        task = self._task if self._task is not None else self.start()
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout)
        except asyncio.CancelledError:
            if task.cancelled():
                raise SetupUnavailableError("Warehouse setup was cancelled") from None
            raise

    def cancel(self) -> None:
        """Stop a bootstrap that is still running."""
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def _run(self) -> WarehouseSettings:
        setup_info = await self.bootstrapper.fetch()
        self._settings = WarehouseSettings(options=self.options, setup_info=setup_info)
        return self._settings

    @staticmethod
    def _log_failure(task: asyncio.Task) -> None:
        if task.cancelled():
            logfire.info("Warehouse setup was cancelled")
        elif task.exception() is not None:
            logfire.error(f"Warehouse setup failed: {task.exception()}")


async def register(
    options: RegisterOptions, transport: Optional[httpx.AsyncBaseTransport] = None
) -> WarehouseSettings:
    """Obtain the warehouse setup information and build the settings used to issue tokens.

    Blocks until the warehouse answers. The bootstrap runs in the calling task, so
    cancelling the caller (or wrapping it in `asyncio.wait_for`) stops the retries.

    Args:
        options (RegisterOptions): Options identifying the warehouse.
        transport (Optional[httpx.AsyncBaseTransport], optional): Transport used to reach
            the warehouse. Defaults to None (the httpx default).

    Returns:
        WarehouseSettings: The settings built from the setup information.
    """
    setup_info = await SetupBootstrapper(options, transport=transport).fetch()
    return WarehouseSettings(options=options, setup_info=setup_info)


async def register_async(
    options_factory: Callable[[], Awaitable[RegisterOptions]],
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> WarehouseSettings:
    """Same as `register`, with options produced by an awaitable factory."""
    return await register(await options_factory(), transport=transport)
