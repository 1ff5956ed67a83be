from .watcher import PathObservation, WatchedResource, Watcher, WatchSource
from .source import KubernetesWatchSource

__all__ = [
    "PathObservation",
    "WatchedResource",
    "Watcher",
    "WatchSource",
    "KubernetesWatchSource",
]
