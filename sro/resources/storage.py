import logging
from typing import Optional
from kubernetes.client import V1ConfigMap, V1ObjectMeta
from sro.resources.base import BaseResource
from sro.common.models.labels import Labels

logger = logging.getLogger(__name__)


class Storage(BaseResource):
    """Persisted key/value side-table kept in a single ConfigMap.

    Used to remember the pods of kernel-affine DaemonSets owned by the
    operator, keyed by a hash of their namespace and name.
    """

    def __init__(self, namespace: str, name: str) -> None:
        self.namespace = namespace
        self.name = name

    def _prepare_config_map(self, data) -> V1ConfigMap:
        return V1ConfigMap(
            metadata=V1ObjectMeta(
                name=self.name,
                namespace=self.namespace,
                labels=Labels().include_owned().as_dict(),
            ),
            data=data,
        )

    def get(self, key: str) -> Optional[str]:
        config_map = self.fetch_config_map(self.core_v1_api, self.name, self.namespace)
        if config_map is None:
            return None
        return (config_map.data or {}).get(key)

    def update(self, key: str, value: str) -> None:
        """Set `key` to `value`, creating the ConfigMap when missing."""
        config_map = self.fetch_config_map(self.core_v1_api, self.name, self.namespace)
        if config_map is None:
            logger.info(f"Creating bookkeeping ConfigMap {self.namespace}/{self.name}")
            self.create_config_map(
                self.core_v1_api, self.namespace, self._prepare_config_map({key: value})
            )
            return
        if (config_map.data or {}).get(key) == value:
            return
        self.patch_config_map(
            self.core_v1_api, self.name, self.namespace, {"data": {key: value}}
        )

    def delete(self, key: str) -> None:
        """Remove `key`; a missing ConfigMap or key is not an error."""
        config_map = self.fetch_config_map(self.core_v1_api, self.name, self.namespace)
        if config_map is None or key not in (config_map.data or {}):
            return
        # A null value in the patch removes the key
        self.patch_config_map(
            self.core_v1_api, self.name, self.namespace, {"data": {key: None}}
        )
