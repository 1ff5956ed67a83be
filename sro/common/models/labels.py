from typing import Dict


class ResourceLabels:
    SRO_DOMAIN: str = "specialresource.openshift.io/"

    OWNED_LABEL = SRO_DOMAIN + "owned"

    KERNEL_AFFINE_ANNOTATION = SRO_DOMAIN + "kernel-affine"

    STATE_LABEL_PREFIX = SRO_DOMAIN + "state-"

    MODULE_OWNED_LABEL = "specialresourcemodule.openshift.io/owned"


class NodeFeatureLabels:
    NFD_DOMAIN = "feature.node.kubernetes.io/"

    KERNEL_VERSION_FULL = NFD_DOMAIN + "kernel-version.full"

    OS_RELEASE_ID = NFD_DOMAIN + "system-os_release.ID"

    OS_RELEASE_VERSION_ID = NFD_DOMAIN + "system-os_release.VERSION_ID"

    OS_RELEASE_RHEL_VERSION = NFD_DOMAIN + "system-os_release.RHEL_VERSION"

    OS_RELEASE_OPENSHIFT_VERSION = NFD_DOMAIN + "system-os_release.OPENSHIFT_VERSION"


class Labels(ResourceLabels):
    _labels: Dict[str, str]

    def __init__(self, labels: Dict[str, str] = None) -> None:
        self._labels = dict(labels) if labels else dict()

    def update(self, labels: Dict[str, str]) -> "Labels":
        self._labels.update(labels.copy())
        return self

    def as_dict(self) -> Dict[str, str]:
        """Return labels as dictionary."""
        return self._labels.copy()

    def as_str(self):
        """Return labels as comma separated string, usable as a label selector."""
        return ",".join([f"{k}={v}" for k, v in self._labels.items()])

    def include(self, label: str, value: str) -> "Labels":
        self.update({label: value})
        return self

    def include_owned(self) -> "Labels":
        return self.include(self.OWNED_LABEL, "true")

    def include_state(self, instance_name: str, value: str = "Ready") -> "Labels":
        return self.include(self.state_label(instance_name), value)

    @classmethod
    def state_label(cls, instance_name: str) -> str:
        return cls.STATE_LABEL_PREFIX + instance_name

    def contains(self, other: "Labels"):
        """Returns True if all labels in `other` are contained."""
        return all(
            key in self._labels and self._labels[key] == value
            for key, value in other.as_dict().items()
        )

    def __str__(self):
        return f"Labels<{self._labels}>"
