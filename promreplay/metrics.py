from prometheus_client import CollectorRegistry, Counter, start_http_server

from promreplay.replay import Outcome


class ReplayMetrics:
    """Outcome counters for one replay run."""

    def __init__(self, registry=None):
        self.registry = registry or CollectorRegistry()
        self.requests = Counter(
            "promreplay_requests",
            "Replayed requests by outcome",
            ["outcome"],
            registry=self.registry,
        )
        for outcome in Outcome:
            self.requests.labels(outcome=outcome.value)

    def observe(self, outcome: Outcome):
        self.requests.labels(outcome=outcome.value).inc()

    def count(self, outcome: Outcome) -> int:
        value = self.registry.get_sample_value(
            "promreplay_requests_total", {"outcome": outcome.value}
        )
        return int(value or 0)

    def total(self) -> int:
        return sum(self.count(o) for o in Outcome)

    def serve(self, port: int):
        start_http_server(port, registry=self.registry)
