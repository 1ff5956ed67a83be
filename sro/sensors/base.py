"""Base sensor classes for operator monitoring.

This module defines the base OperatorSensor class that provides lifecycle hooks
for monitoring various operator events. All hooks are no-ops by default, allowing
subclasses to override only the events they care about.

The hook pattern:
- Hooks come in pairs where an operation spans time: on_X_start() and on_X_complete()
- Start hooks return an optional state dict for tracking multi-phase operations
- Complete hooks receive the state dict from their corresponding start hook
- All hooks are optional - sensors only implement what they need
"""

from typing import Dict, Optional, Any
import logging

logger = logging.getLogger(__name__)


class OperatorSensor:
    """Base sensor class for special resource operator monitoring.

    This class defines lifecycle hooks for three main categories:
    1. Reconciliation lifecycle (work queue and full reconcile)
    2. Chart states (per state completion and per kernel replica apply)
    3. Status and watches (condition writes and watch triggered requests)

    All methods are no-ops by default. Subclasses override only the hooks
    they need to monitor.

    Example:
        class LoggingSensor(OperatorSensor):
            def on_reconcile_start(self, kind, name, namespace, trigger_source) -> Dict:
                return {'start_time': time.time()}

            def on_reconcile_complete(self, kind, name, namespace, state, success, error=None):
                duration = time.time() - state['start_time']
                logger.info(f"Reconciled {name} in {duration}s")
    """

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
        """Called when a reconcile begins.

        Args:
            kind: Kind of the reconciled resource (SpecialResource, SpecialResourceModule)
            name: Resource name
            namespace: Kubernetes namespace, empty for cluster scoped resources
            trigger_source: What triggered reconciliation (queue, watch, resync, etc.)

        Returns:
            Optional state dict passed to on_reconcile_complete
        """
        pass

    def on_reconcile_complete(
        self,
        kind: str,
        name: str,
        namespace: str,
        state: Optional[Dict[str, Any]],
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        """Called when a reconcile completes.

        Args:
            kind: Kind of the reconciled resource
            name: Resource name
            namespace: Kubernetes namespace
            state: State dict returned from on_reconcile_start
            success: Whether reconciliation succeeded
            error: Exception if reconciliation failed
        """
        pass

    def on_reconcile_queued(
        self,
        kind: str,
        name: str,
        namespace: str,
        queue_depth: int,
    ) -> None:
        """Called when a reconcile request is queued.

        Args:
            kind: Kind handled by the queue
            name: Resource name
            namespace: Kubernetes namespace
            queue_depth: Number of distinct keys waiting in the queue
        """
        pass

    def on_reconcile_dequeued(
        self,
        kind: str,
        name: str,
        namespace: str,
        wait_time: float,
    ) -> None:
        """Called when a reconcile request is taken off the queue.

        Args:
            kind: Kind handled by the queue
            name: Resource name
            namespace: Kubernetes namespace
            wait_time: Time spent in queue (seconds)
        """
        pass

    # =============================================================================
    # Chart State Hooks
    # =============================================================================

    def on_state_complete(
        self,
        resource_name: str,
        state_name: str,
        value: int,
    ) -> None:
        """Called when a chart state finishes, successfully or not.

        Args:
            resource_name: SpecialResource name
            state_name: Template name of the state, e.g. 0000-driver-container.yaml
            value: 1 when the state completed, 0 when it failed
        """
        pass

    def on_replica_apply(
        self,
        resource_name: str,
        state_name: str,
        kernel_version: str,
        success: bool,
        error: Optional[Exception] = None,
    ) -> None:
        """Called after one kernel replica of a state was applied.

        Args:
            resource_name: SpecialResource name
            state_name: Template name of the state
            kernel_version: Kernel full version the replica was rendered for
            success: Whether the apply succeeded
            error: Exception if the apply failed
        """
        pass

    # =============================================================================
    # Status and Watch Hooks
    # =============================================================================

    def on_status_update(
        self,
        name: str,
        namespace: str,
        condition: str,
    ) -> None:
        """Called after a condition was written to a resource status.

        Args:
            name: Resource name
            namespace: Kubernetes namespace
            condition: The condition set to True (Ready, Progressing, Errored)
        """
        pass

    def on_watch_triggered(
        self,
        kind: str,
        name: str,
        path: str,
        subscribers: int,
    ) -> None:
        """Called when a watched field changed and dependents were requeued.

        Args:
            kind: Kind of the watched object
            name: Name of the watched object
            path: Dot separated path whose value changed
            subscribers: Number of dependents that were requeued
        """
        pass
