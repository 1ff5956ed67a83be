import logging
from typing import Mapping
from sro.resources.base import BaseResource
from sro.common.models.labels import Labels

logger = logging.getLogger(__name__)


class NodeLabeler(BaseResource):
    """Marks nodes that finished a chart state."""

    def label_nodes(self, instance_name: str, node_selector: Mapping[str, str] = None) -> int:
        """Label every node matching `node_selector` with the state readiness label.

        Returns:
            Number of nodes that were patched.
        """
        selector = Labels(dict(node_selector or {})).as_str() or None
        wanted = Labels().include_state(instance_name)
        patched = 0
        for node in self.list_nodes(self.core_v1_api, label_selector=selector):
            if Labels(node.metadata.labels or {}).contains(wanted):
                continue
            logger.info(f"Labeling node {node.metadata.name} with {wanted}")
            self.patch_node_labels(self.core_v1_api, node.metadata.name, wanted.as_dict())
            patched += 1
        return patched
