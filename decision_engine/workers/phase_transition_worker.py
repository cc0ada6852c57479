"""Scheduled phase transition worker.

Runs `PhaseTransitionService.process_due_transitions()` on a fixed interval
(hourly by default). Each tick gets its own correlation id so the log lines
of one tick can be grouped.

Run:
    python -m decision_engine.workers.phase_transition_worker          # loop
    python -m decision_engine.workers.phase_transition_worker --once   # one tick

Environment Variables:
    See decision_engine.config.engine_config.
"""

from __future__ import annotations

import argparse
import asyncio
import signal
from typing import TYPE_CHECKING

from structlog import get_logger

from decision_engine.domain.errors.infrastructure import InfrastructureFailureError
from decision_engine.infrastructure.observability import (
    configure_structlog,
    generate_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)

if TYPE_CHECKING:
    from decision_engine.application.services.phase_transition_service import (
        PhaseTransitionService,
    )
    from decision_engine.domain.models.transition import TransitionSummary

logger = get_logger(__name__)


class PhaseTransitionWorker:
    """Interval loop around the phase transition scheduler.

    A failed tick is logged and retried at the next interval; it never stops
    the loop.
    """

    def __init__(
        self,
        service: PhaseTransitionService,
        interval_seconds: float = 3600,
    ) -> None:
        self._service = service
        self._interval = interval_seconds
        self._running: bool = False
        self._task: asyncio.Task[None] | None = None
        self._log = logger.bind(worker="phase_transition")
        self.ticks_completed = 0
        self.ticks_failed = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def interval_seconds(self) -> float:
        return self._interval

    async def start(self) -> None:
        """Start the background loop. Calling start twice is a no-op."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        self._log.info("phase_transition_worker_started", interval=self._interval)

    async def stop(self) -> None:
        """Cancel the loop and wait for it to finish."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self._log.info("phase_transition_worker_stopped")

    async def run_once(self) -> TransitionSummary:
        """Run a single tick under a fresh correlation id.

        Raises:
            InfrastructureFailureError: If the tick could not query instances.
        """
        token = set_correlation_id(generate_correlation_id())
        try:
            summary = await self._service.process_due_transitions()
        finally:
            reset_correlation_id(token)
        self.ticks_completed += 1
        return summary

    async def _run_loop(self) -> None:
        loop = asyncio.get_running_loop()
        while self._running:
            started = loop.time()
            try:
                await self.run_once()
            except asyncio.CancelledError:
                raise
            except InfrastructureFailureError as e:
                self.ticks_failed += 1
                self._log.error("phase_transition_tick_failed", error=str(e))
            except Exception as e:
                self.ticks_failed += 1
                self._log.exception("phase_transition_tick_crashed", error=str(e))

            elapsed = loop.time() - started
            await asyncio.sleep(max(0.0, self._interval - elapsed))


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Decision engine phase scheduler")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single tick, print the summary and exit",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between ticks (default: DECISION_TRANSITION_INTERVAL_SECONDS)",
    )
    return parser.parse_args(argv)


async def _run_from_env(argv: list[str] | None = None) -> int:
    from dotenv import load_dotenv

    from decision_engine.bootstrap.container import EngineContainer

    load_dotenv()
    args = _parse_args(argv)

    container = EngineContainer.from_environment()
    configure_structlog(container.config.environment)
    interval = args.interval or container.config.transition_interval_seconds
    worker = PhaseTransitionWorker(
        container.phase_transition_service, interval_seconds=interval
    )

    try:
        if args.once:
            summary = await worker.run_once()
            logger.info("phase_transition_once_completed", **summary.to_dict())
            return 1 if summary.failed else 0

        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop_event.set)

        await worker.start()
        await stop_event.wait()
        await worker.stop()
        return 0
    finally:
        await container.aclose()


def main(argv: list[str] | None = None) -> int:
    return asyncio.run(_run_from_env(argv))


if __name__ == "__main__":
    raise SystemExit(main())
