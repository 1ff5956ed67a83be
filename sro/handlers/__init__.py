from .specialresource import SpecialResourceReconciler, SR_KIND
from .specialresourcemodule import SpecialResourceModuleReconciler, SRM_KIND

__all__ = [
    "SpecialResourceReconciler",
    "SpecialResourceModuleReconciler",
    "SR_KIND",
    "SRM_KIND",
]
