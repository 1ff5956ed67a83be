import logging
import random
import threading
from typing import Callable, Dict, List, Optional
from kubernetes import watch
from kubernetes.client import ApiException
from sro.resources.kube import KubeClient

logger = logging.getLogger(__name__)

EVENT_TYPES = ("ADDED", "MODIFIED", "DELETED")

MAX_BACKOFF_SECONDS = 30


class ResourceStream:
    """List-then-watch loop over one kind, optionally narrowed to a single object.

    Every (re)list is handed to `on_sync`; watch events after that go to
    `handler(event_type, obj)`. An expired resourceVersion (410) triggers
    a fresh list. Access denied (401/403) ends the stream.
    """

    def __init__(
        self,
        kube: KubeClient,
        api_version: str,
        kind: str,
        handler: Callable[[str, Dict], None],
        on_sync: Callable[[List[Dict]], None] = None,
        namespace: Optional[str] = None,
        name: Optional[str] = None,
        timeout_seconds: int = 300,
    ):
        self.kube = kube
        self.api_version = api_version
        self.kind = kind
        self.handler = handler
        self.on_sync = on_sync
        self.namespace = namespace
        self.name = name
        self.timeout_seconds = timeout_seconds
        self._watcher: Optional[watch.Watch] = None
        self._lock = threading.Lock()

    def __str__(self) -> str:
        target = "/".join(n for n in (self.namespace, self.name) if n)
        return f"{self.kind}.{self.api_version}" + (f" {target}" if target else "")

    def stop(self) -> None:
        with self._lock:
            if self._watcher is not None:
                self._watcher.stop()

    def run(self, stop: threading.Event) -> None:
        resource_version: Optional[str] = None
        backoff_seconds = 1
        while not stop.is_set():
            watcher = watch.Watch()
            with self._lock:
                self._watcher = watcher
            try:
                if resource_version is None:
                    items, resource_version = self.kube.snapshot(
                        self.api_version, self.kind, namespace=self.namespace, name=self.name
                    )
                    if self.on_sync:
                        self.on_sync(items)
                    logger.debug(f"Watching {self} from resourceVersion {resource_version}")
                for event in self.kube.watch(
                    self.api_version,
                    self.kind,
                    namespace=self.namespace,
                    name=self.name,
                    resource_version=resource_version,
                    timeout=self.timeout_seconds,
                    watcher=watcher,
                ):
                    if stop.is_set():
                        break
                    obj = event["object"]
                    resource_version = (
                        (obj.get("metadata") or {}).get("resourceVersion") or resource_version
                    )
                    if event["type"] in EVENT_TYPES:
                        self.handler(event["type"], obj)
                backoff_seconds = 1
            except ApiException as ex:
                if ex.status == 410:
                    logger.warning(f"Watch on {self} expired, re-listing")
                    resource_version = None
                    continue
                if ex.status in (401, 403):
                    logger.error(
                        f"Watch on {self} denied ({ex.status}) - "
                        f"check Role, ClusterRole and Bindings for operator"
                    )
                    return
                logger.exception(f"Watch on {self} failed")
                stop.wait(backoff_seconds * (0.5 + random.random()))
                backoff_seconds = min(backoff_seconds * 2, MAX_BACKOFF_SECONDS)
            except Exception:
                logger.exception(f"Unexpected error watching {self}")
                stop.wait(backoff_seconds * (0.5 + random.random()))
                backoff_seconds = min(backoff_seconds * 2, MAX_BACKOFF_SECONDS)
            finally:
                watcher.stop()
                with self._lock:
                    if self._watcher is watcher:
                        self._watcher = None
