"""Special Resource Operator Sensor Framework.

This module provides a monitoring and observability framework for the operator.
It enables non-invasive instrumentation of operator lifecycle events through a
hook-based pattern.

Key components:
- OperatorSensor: Base class defining lifecycle hooks for operator events
- SensorDelegate: Fan-out pattern for routing events to multiple sensor backends
- PrometheusMonitor: Prometheus metrics exporter

Usage:
    from sro.sensors import SensorDelegate, PrometheusMonitor

    delegate = SensorDelegate()
    delegate.add(PrometheusMonitor())
    delegate.on_state_complete("simple-kmod", "0000-buildconfig.yaml", 1)
"""

from sro.sensors.base import OperatorSensor
from sro.sensors.delegate import SensorDelegate
from sro.sensors.prometheus import PrometheusMonitor
from sro.sensors.server import init_metrics_server

__all__ = [
    'OperatorSensor',
    'SensorDelegate',
    'PrometheusMonitor',
    'init_metrics_server',
]
