"""
Rebuild coordinator for the watch session.

Serializes invocations of the generation pipeline, coalesces change events
that arrive during a rebuild into a single follow-up rebuild, and recovers
from pipeline failures so the watch session keeps running.
"""

import asyncio
import logging
import time
from typing import Any

from watch_rebuild.config import WatchConfig
from watch_rebuild.core.interfaces import IGenerationPipeline
from watch_rebuild.models import ChangeEvent, PipelineResult, RebuildOutcome, SessionState
from watch_rebuild.monitoring.rebuild_guard import RebuildGuard
from watch_rebuild.monitoring.reporter import WatchReporter

logger = logging.getLogger(__name__)

MAX_RECORDED_ERRORS = 100


class RebuildCoordinator:
    """
    Runs the pipeline one rebuild at a time.

    State transitions happen under ``_state_lock``: the check of the current
    state and the move to BUILDING are one atomic step, so two triggers can
    never both start a rebuild. Requests arriving while a rebuild runs only
    set ``_rebuild_pending``; the running build loop performs exactly one
    more rebuild for all of them. Changes the guard held back while the
    pipeline ran set the same flag, so no change is left without a rebuild.
    """

    def __init__(
        self,
        config: WatchConfig,
        pipeline: IGenerationPipeline,
        guard: RebuildGuard,
        reporter: WatchReporter | None = None,
    ):
        """
        Initialize the rebuild coordinator.

        Args:
            config: Watch configuration (pipeline arguments)
            pipeline: Generation pipeline to invoke
            guard: Guard suspending monitor delivery during rebuilds
            reporter: Console reporter (created if not provided)
        """
        self.config = config
        self.pipeline = pipeline
        self.guard = guard
        self.reporter = reporter or WatchReporter()

        self._state = SessionState.IDLE
        self._state_lock = asyncio.Lock()
        self._in_flight = False
        self._rebuild_pending = False
        self._idle = asyncio.Event()
        self._idle.set()

        # Statistics tracking
        self._stats = {
            "rebuilds": 0,
            "succeeded": 0,
            "failed": 0,
            "coalesced": 0,
            "held_back": 0,
            "refused": 0,
            "last_duration_seconds": None,
            "errors": [],
        }

    async def on_change(self, event: ChangeEvent) -> RebuildOutcome | None:
        """
        Handle a change event reaching the coordinator.

        Args:
            event: Change event delivered by the monitor

        Returns:
            Outcome of the last rebuild this call ran, or None if the event was
            coalesced into a running rebuild or refused during shutdown
        """
        return await self.rebuild(trigger=event)

    async def rebuild(self, trigger: ChangeEvent | None = None) -> RebuildOutcome | None:
        """
        Request a full rebuild.

        Args:
            trigger: Change event that caused the request (None at startup)

        Returns:
            Outcome of the last rebuild this call ran, or None if the request
            was coalesced into a running rebuild or refused during shutdown
        """
        async with self._state_lock:
            if self._state == SessionState.SHUTTING_DOWN:
                self._stats["refused"] += 1
                logger.debug("Rebuild refused during shutdown (trigger: %s)", trigger)
                return None

            if self._in_flight:
                if not self._rebuild_pending:
                    logger.debug("Rebuild in progress, scheduling one follow-up rebuild")
                self._rebuild_pending = True
                self._stats["coalesced"] += 1
                return None

            self._state = SessionState.BUILDING
            self._in_flight = True
            self._idle.clear()

        return await self._run_build_loop(trigger)

    async def _run_build_loop(self, trigger: ChangeEvent | None) -> RebuildOutcome:
        """Run rebuilds until no follow-up is pending, then return to IDLE."""
        try:
            while True:
                outcome = await self._rebuild_once(trigger)
                missed = self.guard.missed_changes

                async with self._state_lock:
                    if missed:
                        self._stats["held_back"] += missed
                        if self._state == SessionState.BUILDING:
                            logger.debug("%d change(s) held back during the rebuild", missed)
                            self._rebuild_pending = True

                    if self._rebuild_pending and self._state == SessionState.BUILDING:
                        self._rebuild_pending = False
                        trigger = None
                        logger.info("Changes arrived during the rebuild, rebuilding again")
                        continue

                    self._rebuild_pending = False
                    if self._state == SessionState.BUILDING:
                        self._state = SessionState.IDLE
                    return outcome
        finally:
            self._in_flight = False
            self._idle.set()

    async def _rebuild_once(self, trigger: ChangeEvent | None) -> RebuildOutcome:
        """
        Invoke the pipeline once behind the guard and capture the outcome.

        Pipeline failures are recovered here and never propagate.
        """
        if trigger is not None:
            logger.info("Rebuilding after %s", trigger)
        else:
            logger.info("Rebuilding %s -> %s", self.config.input_dir, self.config.output_dir)

        started = time.perf_counter()
        try:
            result = await self.guard.run_exclusive(self._invoke_pipeline)
            success, error = result.success, result.error
            if not success and not error:
                error = "Pipeline reported failure"
        except Exception as e:
            logger.exception("Pipeline %s raised during rebuild", self.pipeline.description)
            success, error = False, f"{type(e).__name__}: {e}"

        outcome = RebuildOutcome(
            success=success,
            error=error,
            duration_seconds=time.perf_counter() - started,
            trigger=trigger,
        )
        self._update_stats(outcome)

        if outcome.success:
            logger.info("Rebuild succeeded in %.2fs", outcome.duration_seconds)
        else:
            logger.error("Rebuild failed after %.2fs: %s", outcome.duration_seconds, outcome.error)

        self.reporter.rebuild_finished(outcome)
        return outcome

    async def _invoke_pipeline(self) -> PipelineResult:
        """Run the blocking pipeline on a worker thread."""
        input_dir, output_dir, options = self.config.get_pipeline_arguments()
        result = await asyncio.to_thread(self.pipeline.run, input_dir, output_dir, options)
        if not isinstance(result, PipelineResult):
            raise TypeError(f"Pipeline returned {type(result).__name__}, expected PipelineResult")
        return result

    def begin_shutdown(self) -> None:
        """
        Enter SHUTTING_DOWN; terminal.

        An in-flight rebuild is allowed to finish, but no further rebuild
        starts, including a pending follow-up.
        """
        if self._state != SessionState.SHUTTING_DOWN:
            logger.info("Rebuild coordinator shutting down")
        self._state = SessionState.SHUTTING_DOWN
        self._rebuild_pending = False

    async def wait_until_idle(self, timeout: float | None = None) -> bool:
        """
        Wait for the in-flight rebuild, if any, to finish.

        Args:
            timeout: Maximum seconds to wait (wait forever if None)

        Returns:
            True if no rebuild is running, False if the timeout expired
        """
        try:
            await asyncio.wait_for(self._idle.wait(), timeout)
        except TimeoutError:
            return False
        return True

    def _update_stats(self, outcome: RebuildOutcome) -> None:
        """
        Update rebuild statistics.

        Args:
            outcome: Outcome of the rebuild that just finished
        """
        self._stats["rebuilds"] += 1
        self._stats["last_duration_seconds"] = outcome.duration_seconds
        if outcome.success:
            self._stats["succeeded"] += 1
        else:
            self._stats["failed"] += 1
            self._stats["errors"].append(outcome.error)

            # Keep only the last 100 errors
            if len(self._stats["errors"]) > MAX_RECORDED_ERRORS:
                self._stats["errors"] = self._stats["errors"][-MAX_RECORDED_ERRORS:]

    @property
    def state(self) -> SessionState:
        """Get the current lifecycle state."""
        return self._state

    @property
    def is_building(self) -> bool:
        """Check if a rebuild is currently running."""
        return self._in_flight

    def get_rebuild_stats(self) -> dict[str, Any]:
        """
        Get rebuild statistics.

        Returns:
            Dictionary with rebuild counters and recent errors
        """
        stats = self._stats.copy()
        stats["errors"] = list(self._stats["errors"])
        stats["state"] = self._state.value
        return stats
