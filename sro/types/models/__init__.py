from .chart import HelmRepository, HelmChartReference
from .specialresource_spec import SpecialResourceSpec
from .specialresourcemodule_spec import (
    SpecialResourceModuleSpec,
    SpecialResourceModuleWatch,
)

__all__ = [
    "HelmRepository",
    "HelmChartReference",
    "SpecialResourceSpec",
    "SpecialResourceModuleSpec",
    "SpecialResourceModuleWatch",
]
