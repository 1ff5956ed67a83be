import logging
import threading
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional, Set, Tuple
from sro.common.models.keys import ObjectKey
from sro.sensors.base import OperatorSensor
from sro.types.models import SpecialResourceModuleWatch
from sro.utils.helpers import keylist_dict

logger = logging.getLogger(__name__)


class WatchedResource(NamedTuple):
    """External object observed on behalf of one or more modules."""

    api_version: str
    kind: str
    name: str
    namespace: str = ""

    @classmethod
    def from_watch(cls, watch: SpecialResourceModuleWatch) -> "WatchedResource":
        return cls(watch.api_version, watch.kind, watch.name, watch.namespace or "")

    @classmethod
    def from_object(cls, obj: Dict) -> "WatchedResource":
        meta = obj.get("metadata") or {}
        return cls(
            obj.get("apiVersion", ""),
            obj.get("kind", ""),
            meta.get("name", ""),
            meta.get("namespace") or "",
        )

    def __str__(self) -> str:
        if self.namespace:
            return f"{self.kind} {self.namespace}/{self.name} ({self.api_version})"
        return f"{self.kind} {self.name} ({self.api_version})"


def read_string(obj: Dict, path: str) -> Optional[str]:
    """Return the string at the dot separated `path` of `obj`.

    None is returned when a segment is missing or the value is not a string.
    """
    fields = [f for f in path.split(".") if f]
    if not fields:
        return None
    value = keylist_dict(obj).get(fields)
    return value if isinstance(value, str) else None


class PathObservation:
    """Last seen value at a path and the modules that depend on it."""

    def __init__(self):
        self.value: Optional[str] = None
        self.subscribers: Set[ObjectKey] = set()

    def __repr__(self) -> str:
        return f"PathObservation(value={self.value!r}, subscribers={sorted(self.subscribers, key=str)})"


class WatchSource:
    """Low level event stream for single objects."""

    def start(self, resource: WatchedResource, callback: Callable[[Dict], None]) -> None:
        """Begin delivering events for `resource` to `callback`."""
        raise NotImplementedError()

    def stop(self, resource: WatchedResource) -> None:
        """Stop delivering events for `resource`."""
        raise NotImplementedError()

    def is_watching(self, resource: WatchedResource) -> bool:
        """Whether events for `resource` are still being delivered."""
        return True


class Watcher:
    """Tracks field paths on external objects and requeues their subscribers on change.

    Both maps are guarded by one lock, so registration during a reconcile and
    event dispatch from the watch threads never interleave.
    """

    def __init__(
        self,
        source: WatchSource,
        enqueue: Callable[[ObjectKey], None],
        sensor: OperatorSensor = None,
    ):
        self.source = source
        self.enqueue = enqueue
        self.sensor = sensor
        self._lock = threading.RLock()
        self._watched: Dict[WatchedResource, Dict[str, PathObservation]] = {}

    def reconcile_watches(
        self, module: ObjectKey, watches: Iterable[SpecialResourceModuleWatch]
    ) -> None:
        """Converge tracked paths for `module` to the declared `watches`."""
        declared: Set[Tuple[WatchedResource, str]] = {
            (WatchedResource.from_watch(w), w.path) for w in watches or []
        }
        with self._lock:
            for resource in list(self._watched):
                paths = self._watched[resource]
                for path in list(paths):
                    if (resource, path) in declared:
                        continue
                    observation = paths[path]
                    observation.subscribers.discard(module)
                    if not observation.subscribers:
                        logger.debug(f"No subscribers left for {resource} path {path}")
                        del paths[path]
                if not paths:
                    del self._watched[resource]
                    logger.info(f"Removing watch on {resource}")
                    self.source.stop(resource)
            for resource, path in sorted(declared):
                self.add_resource_to_watch(resource, path, module)

    def add_resource_to_watch(
        self, resource: WatchedResource, path: str, subscriber: ObjectKey
    ) -> None:
        with self._lock:
            paths = self._watched.get(resource)
            if paths is None:
                logger.info(f"Adding watch on {resource}")
                self.source.start(resource, self.dispatch)
                paths = self._watched[resource] = {}
            elif not self.source.is_watching(resource):
                logger.info(f"Restarting watch on {resource}")
                self.source.start(resource, self.dispatch)
            observation = paths.get(path)
            if observation is None:
                observation = paths[path] = PathObservation()
            observation.subscribers.add(subscriber)

    def on_object_event(self, obj: Dict) -> List[ObjectKey]:
        """Return the subscribers to requeue for an observed object."""
        resource = WatchedResource.from_object(obj)
        requests: List[ObjectKey] = []
        with self._lock:
            paths = self._watched.get(resource)
            if not paths:
                return requests
            for path, observation in paths.items():
                value = read_string(obj, path)
                if value is None:
                    logger.warning(f"Cannot read string {path} from {resource}")
                    continue
                if value == observation.value:
                    continue
                subscribers = sorted(observation.subscribers, key=str)
                logger.info(
                    f"{resource} path {path} changed, requeueing "
                    f"{', '.join(str(s) for s in subscribers)}"
                )
                observation.value = value
                requests.extend(subscribers)
                if self.sensor:
                    self.sensor.on_watch_triggered(
                        resource.kind, resource.name, path, len(subscribers)
                    )
        return requests

    def dispatch(self, obj: Dict) -> None:
        for key in self.on_object_event(obj):
            self.enqueue(key)

    def observations(self, resource: WatchedResource) -> Dict[str, PathObservation]:
        with self._lock:
            return dict(self._watched.get(resource, {}))

    def watched_resources(self) -> List[WatchedResource]:
        with self._lock:
            return list(self._watched)

    def tracked_paths(self, module: ObjectKey) -> int:
        """Number of (resource, path) entries `module` subscribes to."""
        with self._lock:
            return sum(
                1
                for paths in self._watched.values()
                for observation in paths.values()
                if module in observation.subscribers
            )
