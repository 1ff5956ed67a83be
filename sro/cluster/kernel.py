import re
from typing import Dict, Union
from sro.common.models.labels import Labels, NodeFeatureLabels
from sro.utils.helpers import compute_hash, keylist_dict

# Presence of the annotation key line decides affinity, its value is ignored
AFFINE_REGEX = re.compile(
    r"^\s+" + re.escape(Labels.KERNEL_AFFINE_ANNOTATION) + r":.*$", re.MULTILINE
)

_WORKLOAD_KINDS = ("DaemonSet", "Deployment", "StatefulSet")


def is_template_affine(data: Union[bytes, str]) -> bool:
    """Return True if the raw template text declares the kernel-affine annotation."""
    if isinstance(data, bytes):
        data = data.decode("utf-8", errors="replace")
    return AFFINE_REGEX.search(data) is not None


def is_object_affine(obj: Dict) -> bool:
    annotations = (obj.get("metadata") or {}).get("annotations") or {}
    return annotations.get(Labels.KERNEL_AFFINE_ANNOTATION) == "true"


def affine_suffix(kernel_full_version: str, os_major_minor: str) -> str:
    kernel_version = kernel_full_version.replace("_", "-")
    return compute_hash(f"{os_major_minor}-{kernel_version}")


def set_affine_attributes(obj: Dict, kernel_full_version: str, os_major_minor: str) -> None:
    """Pin a kernel-affine object to the nodes running `kernel_full_version`.

    The object name gets a suffix derived from the OS and kernel version so
    one replica exists per kernel. Workloads also get their `app` label and
    selector renamed, and all objects get a kernel node selector.
    """
    name = f"{obj['metadata']['name']}-{affine_suffix(kernel_full_version, os_major_minor)}"
    obj["metadata"]["name"] = name

    if obj.get("kind") in _WORKLOAD_KINDS:
        d = keylist_dict(obj)
        d[["metadata", "labels", "app"]] = name
        d[["spec", "selector", "matchLabels", "app"]] = name
        d[["spec", "template", "metadata", "labels", "app"]] = name

    set_version_node_affinity(obj, kernel_full_version)


def set_version_node_affinity(obj: Dict, kernel_full_version: str) -> None:
    if obj.get("kind") in _WORKLOAD_KINDS:
        fields = ["spec", "template", "spec", "nodeSelector"]
    elif obj.get("kind") == "Pod":
        fields = ["spec", "nodeSelector"]
    else:
        return
    keylist_dict(obj)[fields + [NodeFeatureLabels.KERNEL_VERSION_FULL]] = kernel_full_version
