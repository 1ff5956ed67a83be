import logging
import threading
from typing import Callable, Dict, Tuple
from sro.resources.kube import KubeClient
from sro.resources.stream import ResourceStream
from sro.watcher.watcher import WatchedResource, WatchSource

logger = logging.getLogger(__name__)


class KubernetesWatchSource(WatchSource):
    """Runs one watch thread per watched object."""

    def __init__(self, kube: KubeClient, timeout_seconds: int = 300):
        self.kube = kube
        self.timeout_seconds = timeout_seconds
        self._streams: Dict[WatchedResource, Tuple[ResourceStream, threading.Event]] = {}
        self._lock = threading.Lock()

    def start(self, resource: WatchedResource, callback: Callable[[Dict], None]) -> None:
        def on_event(event_type: str, obj: Dict) -> None:
            if event_type != "DELETED":
                callback(obj)

        def on_sync(items):
            for obj in items:
                callback(obj)

        with self._lock:
            if resource in self._streams:
                return
            stream = ResourceStream(
                self.kube,
                resource.api_version,
                resource.kind,
                on_event,
                on_sync=on_sync,
                namespace=resource.namespace or None,
                name=resource.name,
                timeout_seconds=self.timeout_seconds,
            )
            stop = threading.Event()
            self._streams[resource] = (stream, stop)

        def run() -> None:
            try:
                stream.run(stop)
            finally:
                self._forget(resource, stream)

        thread = threading.Thread(
            target=run,
            name=f"watch-{resource.kind.lower()}-{resource.name}",
            daemon=True,
        )
        thread.start()

    def is_watching(self, resource: WatchedResource) -> bool:
        with self._lock:
            return resource in self._streams

    def _forget(self, resource: WatchedResource, stream: ResourceStream) -> None:
        # A stream that gave up, e.g. on 401/403, can be started again
        with self._lock:
            entry = self._streams.get(resource)
            if entry is not None and entry[0] is stream:
                del self._streams[resource]

    def stop(self, resource: WatchedResource) -> None:
        with self._lock:
            entry = self._streams.pop(resource, None)
        if entry is None:
            return
        stream, stop = entry
        stop.set()
        stream.stop()

    def stop_all(self) -> None:
        with self._lock:
            resources = list(self._streams)
        for resource in resources:
            self.stop(resource)
