import copy
import logging
from enum import Enum
from typing import Callable, Dict, List, NamedTuple, Optional
from kubernetes.client import ApiException
from sro.common.models.keys import ObjectKey
from sro.resources.customresource import BaseCustomResource
from sro.sensors.base import OperatorSensor
from sro.utils.errors import StatusUpdateAbandoned, StatusUpdateError, conflict_error
from sro.utils.helpers import now, upsert_condition

logger = logging.getLogger(__name__)

# Condition reasons
HANDLING_STATE = "HandlingState"
RECONCILED = "Reconciled"
RECONCILE_FAILED = "ReconcileFailed"

# Reason written on the other two conditions, keyed by the condition being set
_INACTIVE_REASONS = {
    "Ready": "SpecialResourceIsReady",
    "Progressing": "Progressing",
    "Errored": "ErrorHasOccurred",
}


class ConditionState(Enum):
    READY = "Ready"
    PROGRESSING = "Progressing"
    ERRORED = "Errored"


class StatusCondition(NamedTuple):
    """The single current condition of a resource."""

    state: ConditionState
    reason: str
    message: str
    timestamp: str = ""

    def to_conditions(self, existing: Optional[List[Dict]] = None) -> List[Dict]:
        """Serialize into one record per condition type.

        Exactly one record, the current state, is True; the other two are
        always written False.
        """
        conds = list(existing or [])
        for state in ConditionState:
            active = state is self.state
            conds = upsert_condition(
                conds,
                {
                    "type": state.value,
                    "status": "True" if active else "False",
                    "reason": self.reason if active else _INACTIVE_REASONS[self.state.value],
                    "message": self.message if active else "",
                },
                at=self.timestamp or None,
            )
        return conds


def _status(obj: Dict) -> Dict:
    if not isinstance(obj.get("status"), dict):
        obj["status"] = {}
    return obj["status"]


class StatusUpdater:
    """Writes conditions and display state to the status of operator resources."""

    def __init__(self, resource: BaseCustomResource, sensor: OperatorSensor = None) -> None:
        self.resource = resource
        self.sensor = sensor

    def set_as_ready(self, ref: ObjectKey, reason: str, message: str) -> None:
        self._set_condition(ref, StatusCondition(ConditionState.READY, reason, message, now()))

    def set_as_progressing(self, ref: ObjectKey, reason: str, message: str) -> None:
        self._set_condition(
            ref, StatusCondition(ConditionState.PROGRESSING, reason, message, now())
        )

    def set_as_errored(self, ref: ObjectKey, reason: str, message: str) -> None:
        self._set_condition(ref, StatusCondition(ConditionState.ERRORED, reason, message, now()))

    def update_display_state(self, ref: ObjectKey, state: str) -> None:
        """Set `status.state`. Failures are logged and never raised."""

        def mutate(obj: Dict) -> None:
            _status(obj)["state"] = state

        try:
            self._update(ref, mutate)
        except Exception as e:
            logger.warning(f"Failed to update display state of {ref} to {state!r}: {e}")

    def update_status(self, ref: ObjectKey, fields: Dict) -> None:
        """Merge `fields` into the status of `ref`."""

        def mutate(obj: Dict) -> None:
            _status(obj).update(fields)

        self._update(ref, mutate)

    def _set_condition(self, ref: ObjectKey, condition: StatusCondition) -> None:
        def mutate(obj: Dict) -> None:
            status = _status(obj)
            status["conditions"] = condition.to_conditions(status.get("conditions"))

        self._update(ref, mutate)
        if self.sensor:
            self.sensor.on_status_update(ref.name, ref.namespace or "", condition.state.value)

    def _fetch(self, ref: ObjectKey) -> Optional[Dict]:
        return self.resource.fetch(ref.name, ref.namespace)

    def _update(self, ref: ObjectKey, mutate: Callable[[Dict], None]) -> None:
        try:
            obj = self._fetch(ref)
        except ApiException as e:
            raise StatusUpdateError(
                f"Is {ref} being deleted? Cannot get current instance: {e}"
            ) from e
        if obj is None:
            raise StatusUpdateAbandoned(f"Is {ref} being deleted? Cannot get current instance")

        obj = copy.deepcopy(obj)
        mutate(obj)
        try:
            self.resource.replace_status(obj)
            return
        except ApiException as e:
            if not conflict_error(e):
                raise StatusUpdateError(f"Failed to update {ref} status: {e}") from e
            logger.info(f"Conflict updating status of {ref}, fetching latest version")

        self._retry_after_conflict(ref, mutate)

    def _retry_after_conflict(self, ref: ObjectKey, mutate: Callable[[Dict], None]) -> None:
        try:
            obj = self._fetch(ref)
        except ApiException as e:
            raise StatusUpdateError(f"Conflict occurred during status update of {ref}: {e}") from e
        if obj is None:
            raise StatusUpdateAbandoned(
                f"Could not update status of {ref} because the object does not exist"
            )
        if (obj.get("metadata") or {}).get("deletionTimestamp"):
            raise StatusUpdateAbandoned(
                f"Status of {ref} won't be updated because object is marked for deletion"
            )

        obj = copy.deepcopy(obj)
        mutate(obj)
        try:
            self.resource.replace_status(obj)
        except ApiException as e:
            raise StatusUpdateError(f"Conflict occurred during status update of {ref}: {e}") from e
