"""
Watch session lifecycle.

Wires the filesystem monitor, rebuild guard and rebuild coordinator
together, runs the initial rebuild, keeps the process alive between
rebuilds, and tears everything down on a shutdown request.
"""

import asyncio
import logging
import signal

from watch_rebuild.config import WatchConfig
from watch_rebuild.core.interfaces import IGenerationPipeline
from watch_rebuild.models import ChangeEvent, InitializationError, SessionState, ShutdownError
from watch_rebuild.monitoring.file_watcher import FileSystemMonitor
from watch_rebuild.monitoring.rebuild_coordinator import RebuildCoordinator
from watch_rebuild.monitoring.rebuild_guard import RebuildGuard
from watch_rebuild.monitoring.reporter import WatchReporter

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INITIAL_REBUILD_FAILED = 1

SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class WatchSession:
    """
    A single watch session over one input directory.

    The session owns the monitor's watch handle and releases it exactly once,
    during teardown.
    """

    def __init__(
        self,
        config: WatchConfig,
        pipeline: IGenerationPipeline,
        monitor: FileSystemMonitor | None = None,
        reporter: WatchReporter | None = None,
        install_signal_handlers: bool = True,
    ):
        """
        Initialize the watch session.

        Args:
            config: Watch configuration
            pipeline: Generation pipeline to run on every rebuild
            monitor: Optional filesystem monitor (will create if not provided)
            reporter: Optional console reporter (will create if not provided)
            install_signal_handlers: Whether SIGINT/SIGTERM request shutdown
        """
        self.config = config
        self.reporter = reporter or WatchReporter()
        self.monitor = monitor or FileSystemMonitor(join_timeout=config.observer_join_timeout_seconds)
        self.guard = RebuildGuard(self.monitor)
        self.coordinator = RebuildCoordinator(config, pipeline, self.guard, reporter=self.reporter)
        self.install_signal_handlers = install_signal_handlers

        self._loop: asyncio.AbstractEventLoop | None = None
        self._started = False
        self._shutdown_requested = False
        self._installed_signals: list[signal.Signals] = []
        self._dispatched: set[asyncio.Task] = set()

        self._exclude_pipeline_output()

    async def run(self) -> int:
        """
        Run the watch session until shutdown is requested.

        Returns:
            EXIT_OK after a clean shutdown, EXIT_INITIAL_REBUILD_FAILED if the
            initial rebuild failed and the configuration says to stop

        Raises:
            MonitoringError: If the input directory cannot be watched
            InitializationError: If the session has already been run
            ShutdownError: If an in-flight rebuild outlives the shutdown timeout;
                the rebuild itself is not interrupted and keeps its worker thread
        """
        if self._started:
            raise InitializationError(
                "A watch session can only be run once", component="WatchSession", initialization_stage="run"
            )
        self._started = True
        self._loop = asyncio.get_running_loop()

        self.monitor.start(self.config.input_dir)
        try:
            self._install_signal_handlers()

            outcome = await self.coordinator.rebuild()
            if outcome is not None and not outcome.success and self.config.exit_on_initial_failure:
                logger.error("Initial rebuild failed, ending watch session")
                return EXIT_INITIAL_REBUILD_FAILED

            async for event in self.monitor.events():
                self.reporter.change_detected(event)
                self._dispatch(event)
        finally:
            await self._teardown()

        return EXIT_OK

    def request_shutdown(self) -> None:
        """
        Ask the session to stop; idempotent.

        The blocked wait for the next event wakes up, no new rebuild starts,
        and a rebuild already running is allowed to finish.
        """
        if self._shutdown_requested:
            return
        self._shutdown_requested = True
        logger.info("Shutdown requested")
        self.coordinator.begin_shutdown()
        self.monitor.close_stream()

    def _exclude_pipeline_output(self) -> None:
        """Keep the directories the pipeline writes to from triggering rebuilds."""
        input_dir = self.config.input_dir
        for path in self.config.get_excluded_paths():
            if path == input_dir or path in input_dir.parents:
                logger.warning("Cannot ignore %s: it contains the watched directory %s", path, input_dir)
                continue
            self.monitor.exclude(path)

        if self.config.output_inside_input():
            logger.warning(
                "Output directory %s is inside the watched directory; changes under it are ignored",
                self.config.output_dir,
            )

    def _dispatch(self, event: ChangeEvent) -> None:
        """Hand an event to the coordinator without blocking the event stream."""
        task = asyncio.create_task(self.coordinator.on_change(event))
        self._dispatched.add(task)
        task.add_done_callback(self._dispatched.discard)

    async def _teardown(self) -> None:
        """Stop the monitor, wait for the in-flight rebuild, release resources."""
        self.request_shutdown()
        self._remove_signal_handlers()

        await asyncio.to_thread(self.monitor.stop)

        timeout = self.config.shutdown_timeout_seconds
        if self.coordinator.is_building:
            logger.info("Waiting up to %.1fs for the running rebuild to finish", timeout)
        if not await self.coordinator.wait_until_idle(timeout):
            raise ShutdownError(
                f"Rebuild still running after {timeout:.1f}s",
                component="RebuildCoordinator",
                shutdown_stage="wait_until_idle",
            )

        if self._dispatched:
            await asyncio.gather(*self._dispatched, return_exceptions=True)

        logger.info("Watch session stopped")

    def _install_signal_handlers(self) -> None:
        if not self.install_signal_handlers or self._loop is None:
            return
        for sig in SHUTDOWN_SIGNALS:
            try:
                self._loop.add_signal_handler(sig, self.request_shutdown)
            except (NotImplementedError, RuntimeError, ValueError):
                # Not supported on this platform or outside the main thread
                logger.debug("Cannot install handler for %s", sig.name)
                continue
            self._installed_signals.append(sig)

    def _remove_signal_handlers(self) -> None:
        if self._loop is None:
            return
        while self._installed_signals:
            self._loop.remove_signal_handler(self._installed_signals.pop())

    @property
    def state(self) -> SessionState:
        """Get the current lifecycle state."""
        return self.coordinator.state

    @property
    def is_running(self) -> bool:
        """Check if the session has started and not yet been asked to stop."""
        return self._started and not self._shutdown_requested
