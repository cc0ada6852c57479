"""Decision engine metrics for Prometheus exposition.

The collector owns its CollectorRegistry and is created once per process by
the engine container; there is no module-level singleton, so separate
processes (and separate tests) never share counters.
"""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

from decision_engine.domain.models.transition import TransitionSummary


class DecisionMetricsCollector:
    """Collects scheduler, participation and HTTP metrics.

    Attributes:
        transitions_total: Candidate instances processed, by outcome.
        transition_ticks_total: Scheduler ticks, by result (ok/fatal).
        transition_tick_duration_seconds: Tick duration histogram.
        ballots_cast_total: Ballots accepted.
        proposals_submitted_total: Proposals submitted.
        http_requests_total: API requests by method, route and status.
    """

    def __init__(
        self,
        registry: CollectorRegistry | None = None,
        environment: str = "development",
        service_name: str = "decision-engine",
    ) -> None:
        """Initialize the metrics collector.

        Args:
            registry: Optional custom registry; a private one is created otherwise.
            environment: Value of the environment label.
            service_name: Value of the service label.
        """
        self._registry = registry or CollectorRegistry()
        self._environment = environment
        self._service_name = service_name

        self.transitions_total = Counter(
            name="decision_phase_transitions_total",
            documentation="Candidate instances processed by the transition scheduler",
            labelnames=["outcome", "service", "environment"],
            registry=self._registry,
        )
        self.transition_ticks_total = Counter(
            name="decision_transition_ticks_total",
            documentation="Transition scheduler ticks",
            labelnames=["result", "service", "environment"],
            registry=self._registry,
        )
        self.transition_tick_duration_seconds = Histogram(
            name="decision_transition_tick_duration_seconds",
            documentation="Duration of transition scheduler ticks",
            labelnames=["service", "environment"],
            registry=self._registry,
        )
        self.ballots_cast_total = Counter(
            name="decision_ballots_cast_total",
            documentation="Ballots accepted",
            labelnames=["service", "environment"],
            registry=self._registry,
        )
        self.proposals_submitted_total = Counter(
            name="decision_proposals_submitted_total",
            documentation="Proposals submitted",
            labelnames=["service", "environment"],
            registry=self._registry,
        )
        self.http_requests_total = Counter(
            name="decision_http_requests_total",
            documentation="HTTP requests handled by the API",
            labelnames=["method", "route", "status", "service", "environment"],
            registry=self._registry,
        )

    def _labels(self) -> dict[str, str]:
        return {"service": self._service_name, "environment": self._environment}

    def record_tick(self, summary: TransitionSummary, duration_seconds: float) -> None:
        """Record one completed scheduler tick."""
        labels = self._labels()
        for outcome, count in (
            ("processed", summary.processed),
            ("failed", summary.failed),
            ("skipped", summary.skipped),
        ):
            if count:
                self.transitions_total.labels(outcome=outcome, **labels).inc(count)
        self.transition_ticks_total.labels(result="ok", **labels).inc()
        self.transition_tick_duration_seconds.labels(**labels).observe(duration_seconds)

    def record_fatal_tick(self) -> None:
        """Record a tick aborted by an infrastructure failure."""
        self.transition_ticks_total.labels(result="fatal", **self._labels()).inc()

    def record_ballot(self) -> None:
        self.ballots_cast_total.labels(**self._labels()).inc()

    def record_proposal(self) -> None:
        self.proposals_submitted_total.labels(**self._labels()).inc()

    def record_request(self, method: str, route: str, status: int) -> None:
        self.http_requests_total.labels(
            method=method, route=route, status=str(status), **self._labels()
        ).inc()

    def get_registry(self) -> CollectorRegistry:
        return self._registry

    def render(self) -> bytes:
        """Prometheus text exposition of this collector's registry."""
        return generate_latest(self._registry)
