"""Prometheus monitoring backend for the special resource operator.

This module provides PrometheusMonitor, which collects operator lifecycle events
and exposes them as Prometheus metrics:

1. Reconciliation Loop Health - Duration, queue depth, throughput, errors
2. Chart States - Per state completion and per kernel replica apply results
3. Status and Watches - Condition writes and watch triggered reconciles

`sro_states_completed_info` is the state completion gauge: 1 when the last
run of a state completed, 0 when it failed on its final kernel replica.
"""

from typing import Dict, Optional, Any
import time
import logging

from prometheus_client import Counter, Histogram, Gauge, REGISTRY, CollectorRegistry

from sro.sensors.base import OperatorSensor

logger = logging.getLogger(__name__)


class PrometheusMonitor(OperatorSensor):
    """Prometheus metrics monitor.

    Exposes metrics via prometheus_client that can be scraped by Prometheus.
    Metrics register with the default registry unless another one is given,
    which lets tests use a private `CollectorRegistry`.

    Example:
        monitor = PrometheusMonitor()
        monitor.on_state_complete("simple-kmod", "0000-buildconfig.yaml", 1)
    """

    def __init__(self, registry: CollectorRegistry = REGISTRY):
        """Initialize Prometheus metrics."""
        super().__init__()

        # =============================================================================
        # Reconciliation Loop Metrics
        # =============================================================================

        self.reconcile_duration = Histogram(
            'sro_reconcile_duration_seconds',
            'Time spent in reconciliation loop',
            labelnames=['kind', 'name', 'namespace', 'trigger_source', 'result'],
            buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0, 300.0],
            registry=registry,
        )

        self.reconcile_total = Counter(
            'sro_reconcile_total',
            'Total number of reconciliation attempts',
            labelnames=['kind', 'name', 'namespace', 'result'],
            registry=registry,
        )

        self.reconcile_errors = Counter(
            'sro_reconcile_errors_total',
            'Total number of reconciliation errors',
            labelnames=['kind', 'name', 'namespace', 'error_type'],
            registry=registry,
        )

        self.reconcile_queue_depth = Gauge(
            'sro_reconcile_queue_depth',
            'Current number of distinct keys waiting for reconciliation',
            labelnames=['kind'],
            registry=registry,
        )

        self.reconcile_queue_wait_seconds = Histogram(
            'sro_reconcile_queue_wait_seconds',
            'Time spent waiting in reconciliation queue',
            labelnames=['kind'],
            buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 120.0],
            registry=registry,
        )

        # =============================================================================
        # Chart State Metrics
        # =============================================================================

        self.states_completed = Gauge(
            'sro_states_completed_info',
            'Completion of each SpecialResource chart state (1 completed, 0 failed)',
            labelnames=['specialresource', 'state'],
            registry=registry,
        )

        self.replica_apply_total = Counter(
            'sro_replica_apply_total',
            'Total number of kernel replica applies per chart state',
            labelnames=['specialresource', 'state', 'result'],
            registry=registry,
        )

        # =============================================================================
        # Status and Watch Metrics
        # =============================================================================

        self.status_updates = Counter(
            'sro_status_updates_total',
            'Total number of status condition writes',
            labelnames=['condition'],
            registry=registry,
        )

        self.watch_triggered = Counter(
            'sro_watch_triggered_total',
            'Total number of watched field changes that requeued dependents',
            labelnames=['kind', 'name', 'path'],
            registry=registry,
        )

        logger.info("PrometheusMonitor initialized with all metrics")

    # =============================================================================
    # Reconciliation Lifecycle Hooks
    # =============================================================================

    def on_reconcile_start(
        self,
        kind: str,
        name: str,
        namespace: str,
        trigger_source: str,
    ) -> Optional[Dict[str, Any]]:
        """Record reconciliation start time."""
        return {
            'start_time': time.time(),
            'trigger_source': trigger_source,
        }

    def on_reconcile_complete(
        self,
        kind: str,
        name: str,
        namespace: str,
        state: Optional[Dict[str, Any]],
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        """Record reconciliation duration and result."""
        result = 'success' if success else 'failure'
        self.reconcile_total.labels(
            kind=kind, name=name, namespace=namespace, result=result
        ).inc()

        if state:
            duration = time.time() - state['start_time']
            self.reconcile_duration.labels(
                kind=kind,
                name=name,
                namespace=namespace,
                trigger_source=state['trigger_source'],
                result=result,
            ).observe(duration)

        if error:
            self.reconcile_errors.labels(
                kind=kind,
                name=name,
                namespace=namespace,
                error_type=error.__class__.__name__,
            ).inc()

    def on_reconcile_queued(self, kind: str, name: str, namespace: str, queue_depth: int) -> None:
        """Record reconciliation queue depth."""
        self.reconcile_queue_depth.labels(kind=kind).set(queue_depth)

    def on_reconcile_dequeued(self, kind: str, name: str, namespace: str, wait_time: float) -> None:
        """Record time spent waiting in queue."""
        self.reconcile_queue_wait_seconds.labels(kind=kind).observe(wait_time)

    # =============================================================================
    # Chart State Hooks
    # =============================================================================

    def on_state_complete(self, resource_name: str, state_name: str, value: int) -> None:
        self.states_completed.labels(
            specialresource=resource_name, state=state_name
        ).set(value)

    def on_replica_apply(
        self,
        resource_name: str,
        state_name: str,
        kernel_version: str,
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        self.replica_apply_total.labels(
            specialresource=resource_name,
            state=state_name,
            result='success' if success else 'failure',
        ).inc()

    # =============================================================================
    # Status and Watch Hooks
    # =============================================================================

    def on_status_update(self, name: str, namespace: str, condition: str) -> None:
        self.status_updates.labels(condition=condition).inc()

    def on_watch_triggered(self, kind: str, name: str, path: str, subscribers: int) -> None:
        self.watch_triggered.labels(kind=kind, name=name, path=path).inc(subscribers)
