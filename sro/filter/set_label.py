from typing import Dict
from sro.common.models.labels import Labels
from sro.utils.helpers import keylist_dict

_WORKLOAD_KINDS = ("DaemonSet", "Deployment", "StatefulSet")


class LabelsNotFoundError(ValueError):
    """Pod template labels are missing on a workload object."""


def set_label(obj: Dict, label: str = Labels.OWNED_LABEL) -> None:
    """Mark `obj` as owned by the operator.

    Workloads get the label on their pod template too, so the pods they
    create are recognised as owned.
    """
    metadata = obj.setdefault("metadata", {})
    labels = metadata.get("labels") or {}
    labels[label] = "true"
    metadata["labels"] = labels
    set_sub_resource_label(obj, label)


def set_sub_resource_label(obj: Dict, label: str = Labels.OWNED_LABEL) -> None:
    if obj.get("kind") not in _WORKLOAD_KINDS:
        return
    labels = keylist_dict(obj).get(["spec", "template", "metadata", "labels"])
    if not isinstance(labels, dict):
        raise LabelsNotFoundError("Labels not found")
    labels[label] = "true"
