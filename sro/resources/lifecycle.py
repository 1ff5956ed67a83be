import logging
from typing import Dict, List
from sro.resources.base import BaseResource
from sro.resources.storage import Storage
from sro.common.models.labels import Labels
from sro.utils.helpers import compute_hash, keylist_dict

logger = logging.getLogger(__name__)

POD_ENTRY = "*v1.Pod"


class Lifecycle(BaseResource):
    """Tracks pods created by owned DaemonSets in the bookkeeping side-table."""

    def __init__(self, storage: Storage) -> None:
        self.storage = storage

    def get_pods_from_daemonset(self, obj: Dict) -> List:
        d = keylist_dict(obj)
        namespace = d.get(["metadata", "namespace"])
        match_labels = d.get(["spec", "selector", "matchLabels"], {})
        if not namespace or not match_labels:
            return []
        return self.list_pods(
            self.core_v1_api, namespace, label_selector=Labels(match_labels).as_str()
        )

    def update_daemonset_pods(self, obj: Dict) -> None:
        """Record every pod of the DaemonSet `obj` in the side-table."""
        for pod in self.get_pods_from_daemonset(obj):
            key = compute_hash(pod.metadata.namespace + pod.metadata.name)
            logger.debug(
                f"Recording pod {pod.metadata.namespace}/{pod.metadata.name} as {key}"
            )
            self.storage.update(key, POD_ENTRY)
