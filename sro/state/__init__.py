from .statusupdater import (
    ConditionState,
    StatusCondition,
    StatusUpdater,
    HANDLING_STATE,
    RECONCILED,
    RECONCILE_FAILED,
)

__all__ = [
    "ConditionState",
    "StatusCondition",
    "StatusUpdater",
    "HANDLING_STATE",
    "RECONCILED",
    "RECONCILE_FAILED",
]
