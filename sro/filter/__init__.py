from .filter import EventFilter, GroupVersionKind, split_api_version
from .set_label import set_label, LabelsNotFoundError

__all__ = [
    "EventFilter",
    "GroupVersionKind",
    "split_api_version",
    "set_label",
    "LabelsNotFoundError",
]
