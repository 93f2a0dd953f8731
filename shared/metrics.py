"""
Shared metrics configuration for the form logic engine.
"""

from typing import Dict, Any, Optional
import time
from contextlib import contextmanager

from prometheus_client import Counter, Histogram, CollectorRegistry


class RuleEngineMetrics:
    """Prometheus metrics recorded by the rule engine."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up rule engine metrics."""
        self._metrics["evaluations_total"] = Counter(
            "form_logic_evaluations_total",
            "Total evaluation passes",
            registry=self.registry
        )

        self._metrics["evaluation_duration_seconds"] = Histogram(
            "form_logic_evaluation_duration_seconds",
            "Evaluation pass duration in seconds",
            registry=self.registry
        )

        self._metrics["rules_fired_total"] = Counter(
            "form_logic_rules_fired_total",
            "Total rules whose conditions held during a pass",
            registry=self.registry
        )

        self._metrics["formula_failures_total"] = Counter(
            "form_logic_formula_failures_total",
            "Total formulas that failed closed to zero",
            ["reason"],
            registry=self.registry
        )

        self._metrics["rule_validation_failures_total"] = Counter(
            "form_logic_rule_validation_failures_total",
            "Total rules rejected by validation",
            registry=self.registry
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    @contextmanager
    def time_evaluation(self):
        """Context manager to time one evaluation pass."""
        start_time = time.perf_counter()
        try:
            yield
        finally:
            duration = time.perf_counter() - start_time
            self._metrics["evaluation_duration_seconds"].observe(duration)
            self._metrics["evaluations_total"].inc()

    def record_rules_fired(self, count: int):
        """Record how many rules fired in a pass."""
        if count:
            self._metrics["rules_fired_total"].inc(count)

    def record_formula_failure(self, reason: str):
        """Record a formula that resolved to the fail-closed value."""
        self._metrics["formula_failures_total"].labels(reason=reason).inc()

    def record_validation_failures(self, count: int = 1):
        """Record rules rejected by validation."""
        self._metrics["rule_validation_failures_total"].inc(count)
