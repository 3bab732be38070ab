"""Application bootstrap for nodeterm.

Wires all components in dependency order and manages the asyncio lifecycle.
Startup order: config → logging → context → AWS clients → queue → store
              → resolver/scheduler/lifecycle → monitor → orchestrator → REST

Shutdown stops the monitor first, lets an in-flight drain finish (bounded by
the shutdown timeout), then stops the REST server.  A fatal monitor error
(every message of a batch failed) stops the app with a non-zero exit.
"""

from __future__ import annotations

import asyncio
import signal
from typing import TYPE_CHECKING, Any

from nodeterm.config import load_config
from nodeterm.models.config import NodeTermConfig
from nodeterm.models.status import Status
from nodeterm.observability.context import APPLICATION_NAME, fetch_account_id
from nodeterm.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    import structlog

    from nodeterm.aws.queue import SQSQueue
    from nodeterm.drain.orchestrator import DrainOrchestrator
    from nodeterm.monitor.sqs_monitor import SQSMonitor
    from nodeterm.store.event_store import EventStore


class _ComponentError(Exception):
    """Raised when a mandatory component fails to start."""

    def __init__(self, component: str, cause: Exception) -> None:
        super().__init__(f"Component '{component}' failed to start: {cause}")
        self.component = component
        self.cause = cause


class NodeTermApp:
    """Application root.  Owns every component and coordinates their lifecycle.

    Calling ``stop()`` on an app that was never started (or already stopped)
    is safe.
    """

    def __init__(self, config: NodeTermConfig | None = None) -> None:
        self.config = config
        self.status = Status()
        self.store: EventStore | None = None
        self.fatal_error: BaseException | None = None

        self._sqs_client: Any = None
        self._ec2_client: Any = None
        self._asg_client: Any = None
        self._queue: SQSQueue | None = None
        self._monitor: SQSMonitor | None = None
        self._orchestrator: DrainOrchestrator | None = None
        self._rest_server: Any = None

        self._stop_event = asyncio.Event()
        self._monitor_task: asyncio.Task[None] | None = None
        self._drain_task: asyncio.Task[None] | None = None
        self._rest_task: asyncio.Task[None] | None = None
        self._background_tasks: list[asyncio.Task[None]] = []

        self._running = False
        self._stopping = False
        self._stopped = False
        self._log: structlog.stdlib.BoundLogger | None = None

    @property
    def running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start all components in dependency order.

        Raises _ComponentError if a mandatory component cannot start.
        """
        # --- 1. Configuration -------------------------------------------
        if self.config is None:
            self.config = load_config()

        # --- 2. Logging -------------------------------------------------
        setup_logging(self.config.log.level)
        self._log = get_logger("app")

        # --- 3. Context -------------------------------------------------
        account_id = await fetch_account_id()
        self._log.info(
            "nodeterm starting",
            application=APPLICATION_NAME,
            region=self.config.aws.region,
            account=self.config.aws.account or None,
            account_id=account_id,
        )

        # --- 4. AWS clients ---------------------------------------------
        self._start_aws_clients()

        # --- 5. Queue ---------------------------------------------------
        await self._start_queue()

        # --- 6. Event store ---------------------------------------------
        self._start_store()

        # --- 7. Monitor + orchestrator ----------------------------------
        self._start_monitor()
        self._start_orchestrator()

        # --- 8. REST API ------------------------------------------------
        await self._start_rest()

        self._running = True
        self._log.info("nodeterm started", port=self.config.api.port)

    def _start_aws_clients(self) -> None:
        assert self._log is not None
        assert self.config is not None
        try:
            import boto3

            region = self.config.aws.region
            self._sqs_client = boto3.client("sqs", region_name=region)
            self._ec2_client = boto3.client("ec2", region_name=region)
            self._asg_client = boto3.client("autoscaling", region_name=region)
            self._log.info("aws clients configured", region=region)
        except Exception as exc:
            raise _ComponentError("aws_clients", exc) from exc

    async def _start_queue(self) -> None:
        assert self._log is not None
        assert self.config is not None
        from nodeterm.aws.queue import QueueNotFoundError, SQSQueue

        queue_name = self.config.settings.queue_name
        try:
            self._queue = await SQSQueue.resolve(self._sqs_client, queue_name)
        except QueueNotFoundError as exc:
            self._log.critical("sqs queue not found", queue_name=queue_name)
            raise _ComponentError("queue", exc) from exc
        except Exception as exc:
            raise _ComponentError("queue", exc) from exc

    def _start_store(self) -> None:
        assert self.config is not None
        from nodeterm.store.event_store import EventStore

        self.store = EventStore(grace_period_seconds=self.config.settings.node_termination_grace_period)

    def _start_monitor(self) -> None:
        assert self._log is not None
        assert self.config is not None
        assert self._queue is not None
        assert self.store is not None
        from nodeterm.aws.instances import InstanceResolver
        from nodeterm.monitor.sqs_monitor import SQSMonitor

        resolver = InstanceResolver(
            self._ec2_client,
            managed_tag=self.config.settings.managed_tag,
            check_if_managed=self.config.settings.check_if_managed,
        )
        self._monitor = SQSMonitor(self._queue, resolver, self.store, self.config.queue)
        self._monitor_task = asyncio.create_task(self._monitor.run(self._stop_event), name="sqs-monitor")
        self._monitor_task.add_done_callback(self._on_monitor_done)
        self._log.info("monitor started", kind=self._monitor.kind)

    def _start_orchestrator(self) -> None:
        assert self._log is not None
        assert self.config is not None
        assert self.store is not None
        from nodeterm.aws.lifecycle import LifecycleClient
        from nodeterm.drain.orchestrator import DrainOrchestrator
        from nodeterm.scheduler.nomad import NomadCLI

        self._orchestrator = DrainOrchestrator(
            store=self.store,
            scheduler=NomadCLI(self.config.drain.nomad_binary),
            lifecycle=LifecycleClient(self._asg_client),
            queue=self._queue,
            poll_interval=self.config.drain.poll_interval_seconds,
        )
        self._drain_task = asyncio.create_task(self._orchestrator.run(self._stop_event), name="drain-orchestrator")
        self._log.info("drain orchestrator started")

    async def _start_rest(self) -> None:
        assert self._log is not None
        assert self.config is not None
        try:
            import uvicorn

            from nodeterm.api import create_app

            fastapi_app = create_app(status=self.status, store=self.store)
            uv_config = uvicorn.Config(
                app=fastapi_app,
                host="0.0.0.0",
                port=self.config.api.port,
                log_config=None,  # structlog handles all logging
                access_log=False,
            )
            server = uvicorn.Server(uv_config)
            self._rest_task = asyncio.create_task(server.serve(), name="rest-server")
            self._rest_server = server
            self._log.info("rest api started", port=self.config.api.port)
        except Exception as exc:
            raise _ComponentError("rest", exc) from exc

    def _on_monitor_done(self, task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            return
        self.fatal_error = exc
        log = self._log or get_logger("app")
        log.critical("monitor failed; shutting down", error=str(exc), error_type=type(exc).__name__)
        self.request_stop()

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    def request_stop(self) -> None:
        """Schedule ``stop()`` once; safe to call from signal handlers."""
        if self._stopping:
            return
        self._stopping = True
        task = asyncio.get_running_loop().create_task(self.stop(), name="shutdown")
        self._background_tasks.append(task)

    async def stop(self) -> None:
        """Stop the monitor, let the in-flight drain finish, then stop REST."""
        if self._stopped or (not self._running and self._log is None):
            return
        self._stopped = True

        log = self._log or get_logger("app")
        log.info("nodeterm shutting down")
        self.status.application_is_stopping()
        self._stop_event.set()

        # The monitor may be blocked in a long poll; abandoning it loses nothing
        # because unacknowledged messages are redelivered.
        if self._monitor_task is not None and not self._monitor_task.done():
            self._monitor_task.cancel()
            await asyncio.gather(self._monitor_task, return_exceptions=True)

        if self._drain_task is not None and not self._drain_task.done():
            timeout = self.config.shutdown_timeout_seconds if self.config else 60
            try:
                await asyncio.wait_for(asyncio.shield(self._drain_task), timeout=timeout)
            except TimeoutError:
                log.warning("drain orchestrator stop timed out", timeout=timeout)
                self._drain_task.cancel()
            except Exception as exc:
                log.error("drain orchestrator raised on stop", error=str(exc))

        if self._rest_server is not None:
            self._rest_server.should_exit = True
        if self._rest_task is not None:
            await asyncio.gather(self._rest_task, return_exceptions=True)

        self._running = False
        log.info("nodeterm stopped")

    async def wait_background_tasks(self) -> None:
        """Await tasks started by ``request_stop`` and log any that failed."""
        results = await asyncio.gather(*self._background_tasks, return_exceptions=True)
        for task, result in zip(self._background_tasks, results, strict=True):
            if isinstance(result, Exception):
                log = self._log or get_logger("app")
                log.error("background task failed", task=task.get_name(), error=str(result))
        self._background_tasks.clear()


# ---------------------------------------------------------------------------
# Async entrypoint
# ---------------------------------------------------------------------------


async def main() -> None:
    """Create the app, register OS signals, run until shutdown is requested."""
    app = NodeTermApp()
    loop = asyncio.get_running_loop()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, app.request_stop)

    try:
        await app.start()
        while app.running:
            await asyncio.sleep(1)
    except _ComponentError as exc:
        log = get_logger("app")
        log.critical(
            "fatal startup error",
            component=exc.component,
            error=str(exc.cause),
        )
        await app.stop()
        raise SystemExit(1) from exc
    finally:
        if app.running:
            await app.stop()
        await app.wait_background_tasks()

    if app.fatal_error is not None:
        raise SystemExit(1)


def run() -> None:
    """Console-script entry point."""
    asyncio.run(main())
