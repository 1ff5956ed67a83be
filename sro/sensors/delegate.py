"""Sensor delegation for fan-out pattern.

This module provides SensorDelegate, which implements the delegation pattern
for routing sensor events to multiple monitoring backends simultaneously.
Each backend receives the same events and can maintain independent state.

A failing backend never breaks the operator: errors raised by a sensor are
logged and the event is still delivered to the remaining sensors.
"""

from typing import Set, Dict, Optional, Any
import logging

from sro.sensors.base import OperatorSensor

logger = logging.getLogger(__name__)


class SensorDelegate(OperatorSensor):
    """Delegate sensor that fans out events to multiple backends.

    Example:
        delegate = SensorDelegate()
        delegate.add(LoggingSensor())
        delegate.add(PrometheusMonitor())

        state = delegate.on_reconcile_start("SpecialResource", "simple-kmod", "", "queue")
        delegate.on_reconcile_complete("SpecialResource", "simple-kmod", "", state, True)
    """

    def __init__(self) -> None:
        """Initialize empty sensor delegate."""
        self._sensors: Set[OperatorSensor] = set()

    def add(self, sensor: OperatorSensor) -> None:
        """Add a sensor to the delegate."""
        logger.info(f"Adding sensor: {sensor.__class__.__name__}")
        self._sensors.add(sensor)

    def remove(self, sensor: OperatorSensor) -> None:
        """Remove a sensor from the delegate."""
        logger.info(f"Removing sensor: {sensor.__class__.__name__}")
        self._sensors.discard(sensor)

    def clear(self) -> None:
        """Remove all sensors from the delegate."""
        logger.info(f"Clearing {len(self._sensors)} sensors")
        self._sensors.clear()

    def _forward(self, hook: str, *args) -> None:
        for sensor in self._sensors:
            try:
                getattr(sensor, hook)(*args)
            except Exception as e:
                logger.error(
                    f"Error in {sensor.__class__.__name__}.{hook}: {e}",
                    exc_info=True,
                )

    # =============================================================================
    # Reconciliation Lifecycle Hooks
    # =============================================================================

    def on_reconcile_start(
        self,
        kind: str,
        name: str,
        namespace: str,
        trigger_source: str,
    ) -> Optional[Dict[OperatorSensor, Any]]:
        """Delegate reconcile_start to all sensors.

        Returns:
            Dict mapping each sensor to its returned state, or None if no sensors
        """
        if not self._sensors:
            return None

        states = {}
        for sensor in self._sensors:
            try:
                state = sensor.on_reconcile_start(kind, name, namespace, trigger_source)
                if state is not None:
                    states[sensor] = state
            except Exception as e:
                logger.error(
                    f"Error in {sensor.__class__.__name__}.on_reconcile_start: {e}",
                    exc_info=True,
                )

        return states if states else None

    def on_reconcile_complete(
        self,
        kind: str,
        name: str,
        namespace: str,
        state: Optional[Dict[OperatorSensor, Any]],
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        """Delegate reconcile_complete to all sensors with their specific state."""
        for sensor in self._sensors:
            try:
                sensor_state = state.get(sensor) if state else None
                sensor.on_reconcile_complete(kind, name, namespace, sensor_state, success, error)
            except Exception as e:
                logger.error(
                    f"Error in {sensor.__class__.__name__}.on_reconcile_complete: {e}",
                    exc_info=True,
                )

    def on_reconcile_queued(self, kind: str, name: str, namespace: str, queue_depth: int) -> None:
        self._forward("on_reconcile_queued", kind, name, namespace, queue_depth)

    def on_reconcile_dequeued(self, kind: str, name: str, namespace: str, wait_time: float) -> None:
        self._forward("on_reconcile_dequeued", kind, name, namespace, wait_time)

    # =============================================================================
    # Chart State Hooks
    # =============================================================================

    def on_state_complete(self, resource_name: str, state_name: str, value: int) -> None:
        self._forward("on_state_complete", resource_name, state_name, value)

    def on_replica_apply(
        self,
        resource_name: str,
        state_name: str,
        kernel_version: str,
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        self._forward(
            "on_replica_apply", resource_name, state_name, kernel_version, success, error
        )

    # =============================================================================
    # Status and Watch Hooks
    # =============================================================================

    def on_status_update(self, name: str, namespace: str, condition: str) -> None:
        self._forward("on_status_update", name, namespace, condition)

    def on_watch_triggered(self, kind: str, name: str, path: str, subscribers: int) -> None:
        self._forward("on_watch_triggered", kind, name, path, subscribers)
