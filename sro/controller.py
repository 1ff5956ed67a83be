"""Reconcile requests shared by the kopf handlers.

Events on a primary object, on the objects it owns, on watched fields and
resync timers all request a reconcile of the primary object by name.
Requests for one object are coalesced until a per object kopf timer takes
them; a request made while that reconcile runs leads to one more reconcile
afterwards. Failures are handed back to kopf as `kopf.TemporaryError` so
kopf retries the timer with an exponentially growing delay.
"""

import logging
import threading
import time
from logging import Logger
from typing import Callable, Dict, Optional, Tuple
import kopf
from sro.common.models.keys import ObjectKey
from sro.types.settings import Settings
from sro.utils.errors import StatusUpdateAbandoned

TRIGGER_EVENT = "event"
TRIGGER_RESYNC = "resync"
TRIGGER_WATCH = "watch"
TRIGGER_REQUEUE = "requeue"

# Reconciles never overlap, across all managed kinds
reconcile_lock = threading.Lock()


class ReconcileRequests:
    """Pending reconcile requests of one kind, at most one per object name."""

    def __init__(self, kind: str, get_sensor: Callable = None):
        self.kind = kind
        self.get_sensor = get_sensor or (lambda: None)
        self._lock = threading.Lock()
        self._pending: Dict[str, Tuple[str, float]] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._pending

    def request(self, name: str, trigger_source: str = TRIGGER_EVENT) -> bool:
        """Request a reconcile of `name`. Returns False when one is already pending."""
        with self._lock:
            if name in self._pending:
                return False
            self._pending[name] = (trigger_source, time.time())
            depth = len(self._pending)
        sensor = self.get_sensor()
        if sensor:
            sensor.on_reconcile_queued(self.kind, name, "", depth)
        return True

    def take(self, name: str) -> Optional[str]:
        """Remove the pending request of `name` and return its trigger source."""
        with self._lock:
            item = self._pending.pop(name, None)
        if item is None:
            return None
        trigger_source, requested_at = item
        sensor = self.get_sensor()
        if sensor:
            sensor.on_reconcile_dequeued(self.kind, name, "", time.time() - requested_at)
        return trigger_source

    def forget(self, name: str) -> None:
        with self._lock:
            self._pending.pop(name, None)


def backoff_delay(retry: int, conf: Settings) -> float:
    """Delay before retry number `retry + 1` of a failing reconcile."""
    delay = conf.requeue_base_delay_seconds * (2 ** max(retry, 0))
    return min(delay, conf.requeue_max_delay_seconds)


def owner_name(obj: Dict, kind: str) -> Optional[str]:
    """Name of the `kind` object listed as owner of `obj`."""
    for owner in (obj.get("metadata") or {}).get("ownerReferences") or []:
        if owner.get("kind") == kind:
            return owner.get("name")
    return None


def process_request(
    requests: ReconcileRequests,
    name: str,
    reconcile: Callable[[ObjectKey, str], None],
    retry: int,
    conf: Settings,
    logger: Logger = None,
) -> bool:
    """Run the pending reconcile of `name`, if any.

    Returns True when a reconcile ran and succeeded.

    Raises:
        kopf.TemporaryError: the reconcile failed and is requested again.
    """
    logger = logger or logging.getLogger(__name__)
    kind = requests.kind
    trigger_source = requests.take(name)
    if trigger_source is None:
        return False

    start_time = time.time()
    try:
        with reconcile_lock:
            reconcile(ObjectKey(name), trigger_source)
    except StatusUpdateAbandoned as e:
        logger.info(f"{kind} {name}: {e}")
        return False
    except kopf.PermanentError as e:
        logger.error(f"{kind} {name} failed permanently: {e}")
        return False
    except kopf.TemporaryError as e:
        requests.request(name, TRIGGER_REQUEUE)
        logger.warning(f"{kind} {name} failed, retrying in {e.delay}s: {e}")
        raise
    except Exception as e:
        requests.request(name, TRIGGER_REQUEUE)
        delay = backoff_delay(retry, conf)
        logger.exception(f"{kind} {name} failed, retrying in {delay:.1f}s: {e}")
        raise kopf.TemporaryError(str(e), delay=delay) from e
    logger.info(f"{kind} {name} reconciled in {time.time() - start_time:.2f}s")
    return True
