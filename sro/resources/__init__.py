from .base import BaseResource
from .customresource import BaseCustomResource, SpecialResource, SpecialResourceModule
from .storage import Storage
from .lifecycle import Lifecycle
from .kube import KubeClient, PLATFORM_OCP, PLATFORM_K8S
from .stream import ResourceStream

__all__ = [
    "BaseResource",
    "BaseCustomResource",
    "SpecialResource",
    "SpecialResourceModule",
    "Storage",
    "Lifecycle",
    "KubeClient",
    "PLATFORM_OCP",
    "PLATFORM_K8S",
    "ResourceStream",
]
