import copy
import logging
import threading
from typing import Any, Dict, Mapping, NamedTuple, Optional
from sro.common.models.labels import Labels
from sro.cluster.kernel import is_object_affine
from sro.resources.lifecycle import Lifecycle
from sro.resources.storage import Storage
from sro.utils.helpers import compute_hash

logger = logging.getLogger(__name__)

CREATE = "CREATE"
UPDATE = "UPDATE"
DELETE = "DELETE"
GENERIC = "GENERIC"


class GroupVersionKind(NamedTuple):
    group: str
    version: str
    kind: str

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}" if self.group else self.version

    @property
    def self_link_marker(self) -> str:
        """API path prefix of objects of this group."""
        return f"/apis/{self.group}/"


def split_api_version(api_version: str):
    """Return (group, version) for `group/version` or a core `version`."""
    if "/" in api_version:
        group, version = api_version.split("/", 1)
        return group, version
    return "", api_version


def _as_dict(obj: Any) -> Dict:
    if isinstance(obj, dict):
        return obj
    if isinstance(obj, Mapping):
        return dict(obj)
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    raise TypeError(f"Unsupported object type {type(obj).__name__}")


def _describe(obj: Dict) -> str:
    meta = obj.get("metadata", {})
    if meta.get("namespace"):
        return f"{obj.get('kind')} {meta['namespace']}/{meta.get('name')}"
    return f"{obj.get('kind')} {meta.get('name')}"


class EventFilter:
    """Decides which cluster events warrant a reconcile of the primary kind.

    Objects are unstructured dicts. Create and generic checks have no side
    effects. Update and delete checks may touch the lifecycle bookkeeping,
    whose failures are logged and never change the decision.
    """

    def __init__(
        self,
        primary: GroupVersionKind,
        lifecycle: Optional[Lifecycle] = None,
        storage: Optional[Storage] = None,
        owned_label: str = Labels.OWNED_LABEL,
    ) -> None:
        self.primary = primary
        self.lifecycle = lifecycle
        self.storage = storage
        self.owned_label = owned_label
        self._seen: Dict[str, Dict] = {}
        self._seen_lock = threading.Lock()

    def is_primary_kind(self, obj: Any, mode: str = "") -> bool:
        obj = _as_dict(obj)
        kind = obj.get("kind")
        if kind:
            group, _ = split_api_version(obj.get("apiVersion", ""))
            matched = kind == self.primary.kind and group == self.primary.group
            if matched:
                logger.debug(f"{mode} IsPrimaryKind (gvk) {_describe(obj)}")
            return matched

        # Freshly admitted objects may not carry their kind yet
        if self.is_owned(obj):
            return False
        self_link = (obj.get("metadata") or {}).get("selfLink") or ""
        if self.primary.self_link_marker in self_link:
            logger.debug(f"{mode} IsPrimaryKind (selfLink) {_describe(obj)}")
            return True
        return False

    def is_owned(self, obj: Any, mode: str = "") -> bool:
        obj = _as_dict(obj)
        for owner in (obj.get("metadata") or {}).get("ownerReferences") or []:
            if owner.get("kind") == self.primary.kind:
                logger.debug(f"{mode} Owned (ownerReference) {_describe(obj)}")
                return True
        labels = (obj.get("metadata") or {}).get("labels") or {}
        if self.owned_label in labels:
            logger.debug(f"{mode} Owned (label) {_describe(obj)}")
            return True
        return False

    def on_create(self, obj: Any) -> bool:
        return self.is_primary_kind(obj, CREATE) or self.is_owned(obj, CREATE)

    def on_update(self, old: Any, new: Any) -> bool:
        old, new = _as_dict(old), _as_dict(new)
        old_meta, new_meta = old.get("metadata") or {}, new.get("metadata") or {}
        old_generation, new_generation = old_meta.get("generation"), new_meta.get("generation")
        old_version, new_version = old_meta.get("resourceVersion"), new_meta.get("resourceVersion")

        if self.is_owned(new, UPDATE) and is_object_affine(new):
            if old_generation == new_generation and old_version == new_version:
                return False
            logger.info(
                f"{UPDATE} Owned generation or resourceVersion changed for kernel affine {_describe(new)}"
            )
            if new.get("kind") == "DaemonSet" and old_generation != new_generation:
                self._update_daemonset_pods(new)
            return True

        if old_generation == new_generation:
            return False
        if old_version == new_version:
            return False

        if self.is_primary_kind(new, UPDATE):
            logger.info(f"{UPDATE} IsPrimaryKind generation changed {_describe(new)}")
            return True

        if self.is_owned(new, UPDATE):
            logger.info(f"{UPDATE} Owned generation changed {_describe(new)}")
            if new.get("kind") == "DaemonSet":
                self._update_daemonset_pods(new)
            return True

        return False

    def on_delete(self, obj: Any) -> bool:
        obj = _as_dict(obj)
        if self.is_primary_kind(obj, DELETE):
            return True

        if self.is_owned(obj, DELETE):
            meta = obj.get("metadata", {})
            key = compute_hash((meta.get("namespace") or "") + (meta.get("name") or ""))
            self._evict(key, obj)
            return True

        return False

    def on_generic(self, obj: Any) -> bool:
        return self.is_primary_kind(obj, GENERIC) or self.is_owned(obj, GENERIC)

    def on_event(self, event_type: Optional[str], obj: Any) -> bool:
        """Admit a raw watch event.

        Updates are checked against the copy of the object seen on its
        previous event; the first event seen for an object counts as a create.
        """
        obj = copy.deepcopy(_as_dict(obj))
        meta = obj.get("metadata") or {}
        uid = meta.get("uid") or f"{meta.get('namespace') or ''}/{meta.get('name')}"
        with self._seen_lock:
            if event_type == "DELETED":
                old = self._seen.pop(uid, None)
            else:
                old = self._seen.get(uid)
                self._seen[uid] = obj
        if event_type == "DELETED":
            return self.on_delete(obj)
        if old is None:
            return self.on_create(obj)
        return self.on_update(old, obj)

    def _update_daemonset_pods(self, obj: Dict) -> None:
        if self.lifecycle is None:
            return
        try:
            self.lifecycle.update_daemonset_pods(obj)
        except Exception as e:
            logger.warning(f"Failed to record pods of {_describe(obj)}: {e}")

    def _evict(self, key: str, obj: Dict) -> None:
        if self.storage is None:
            return
        try:
            self.storage.delete(key)
        except Exception as e:
            logger.warning(f"Failed to delete bookkeeping entry {key} of {_describe(obj)}: {e}")
