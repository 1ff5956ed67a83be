from .chart import HelmRepositorySchema, HelmChartReferenceSchema
from .specialresource_spec import SpecialResourceSpecSchema
from .specialresourcemodule_spec import (
    SpecialResourceModuleSpecSchema,
    SpecialResourceModuleWatchSchema,
)

__all__ = [
    "HelmRepositorySchema",
    "HelmChartReferenceSchema",
    "SpecialResourceSpecSchema",
    "SpecialResourceModuleSpecSchema",
    "SpecialResourceModuleWatchSchema",
]
