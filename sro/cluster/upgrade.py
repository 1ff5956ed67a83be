import logging
from typing import Any, Dict, Mapping, NamedTuple, Optional
from sro.resources.base import BaseResource
from sro.common.models.labels import Labels, NodeFeatureLabels
from sro.utils.helpers import safe_cast

logger = logging.getLogger(__name__)


class NodeVersion(NamedTuple):
    """OS and cluster versions found on the nodes running one kernel."""

    cluster_version: str = ""
    os_version: str = ""
    os_major_minor: str = ""
    os_major: str = ""
    driver_toolkit_image: str = ""


class RenderContext(NamedTuple):
    """Values injected into chart rendering for one kernel replica.

    A new instance is built for every kernel iteration; it is never mutated.
    """

    kernel_full_version: str = ""
    cluster_version_major_minor: str = ""
    operating_system_decimal: str = ""
    operating_system_major_minor: str = ""
    operating_system_major: str = ""
    driver_toolkit_image: str = ""
    state_name: str = ""

    @classmethod
    def for_kernel(
        cls, kernel_full_version: str, version: NodeVersion, state_name: str = ""
    ) -> "RenderContext":
        return cls(
            kernel_full_version=kernel_full_version,
            cluster_version_major_minor=version.cluster_version,
            operating_system_decimal=version.os_version,
            operating_system_major_minor=version.os_major_minor,
            operating_system_major=version.os_major,
            driver_toolkit_image=version.driver_toolkit_image,
            state_name=state_name,
        )

    def as_values(self) -> Dict[str, Any]:
        return {
            "kernelFullVersion": self.kernel_full_version,
            "clusterVersionMajorMinor": self.cluster_version_major_minor,
            "operatingSystemDecimal": self.operating_system_decimal,
            "operatingSystemMajorMinor": self.operating_system_major_minor,
            "operatingSystemMajor": self.operating_system_major,
            "driverToolkitImage": self.driver_toolkit_image,
            "stateName": self.state_name,
        }


ClusterKernelMap = Dict[str, NodeVersion]


def os_versions(version_id: str):
    """Split an OS VERSION_ID like 8.4 into (decimal, major_minor, major)."""
    parts = version_id.split(".")
    major = parts[0]
    major_minor = ".".join(parts[:2]) if len(parts) > 1 else major
    return version_id, major_minor, major


def cluster_major_minor(version: Optional[str]) -> str:
    if not version:
        return ""
    parts = version.split(".")
    if len(parts) < 2 or safe_cast(parts[1], int) is None:
        return version
    return ".".join(parts[:2])


def node_version_from_labels(labels: Mapping[str, str]) -> Optional[NodeVersion]:
    """Derive the NodeVersion of a node from its feature discovery labels."""
    if NodeFeatureLabels.KERNEL_VERSION_FULL not in labels:
        return None
    version_id = labels.get(NodeFeatureLabels.OS_RELEASE_VERSION_ID, "")
    # CoreOS nodes carry the RHEL release in a separate label
    if labels.get(NodeFeatureLabels.OS_RELEASE_ID) == "rhcos":
        version_id = labels.get(NodeFeatureLabels.OS_RELEASE_RHEL_VERSION) or version_id
    decimal, major_minor, major = os_versions(version_id)
    return NodeVersion(
        cluster_version=cluster_major_minor(
            labels.get(NodeFeatureLabels.OS_RELEASE_OPENSHIFT_VERSION)
        ),
        os_version=decimal,
        os_major_minor=major_minor,
        os_major=major,
    )


class ClusterInfo(BaseResource):
    """Collects the kernel versions present on the cluster nodes."""

    def get_cluster_kernel_map(self, node_selector: Mapping[str, str] = None) -> ClusterKernelMap:
        selector = Labels(dict(node_selector or {})).as_str() or None
        kernel_map: ClusterKernelMap = {}
        for node in self.list_nodes(self.core_v1_api, label_selector=selector):
            labels = node.metadata.labels or {}
            version = node_version_from_labels(labels)
            if version is None:
                logger.debug(f"Node {node.metadata.name} has no kernel version label, skipping")
                continue
            kernel = labels[NodeFeatureLabels.KERNEL_VERSION_FULL]
            if kernel not in kernel_map:
                logger.info(f"Found kernel {kernel} on node {node.metadata.name}")
            kernel_map.setdefault(kernel, version)
        return kernel_map
