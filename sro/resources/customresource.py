from typing import Dict, Optional
from sro.resources.base import BaseResource


class BaseCustomResource(BaseResource):
    """Operator custom resource kubernetes access."""

    GROUP_NAME = "sro.openshift.io"
    GROUP_VERSION = "v1beta1"

    # These are defined by subclass
    KIND = None
    PLURAL_NAME = None

    @classmethod
    def api_version(cls) -> str:
        return f"{cls.GROUP_NAME}/{cls.GROUP_VERSION}"

    def fetch(self, name: str, namespace: Optional[str] = None) -> Optional[Dict]:
        """Fetch the resource from kubernetes, None if it does not exist."""
        return self.get_custom_object(
            self.custom_objects_api,
            namespace=namespace,
            group=self.GROUP_NAME,
            version=self.GROUP_VERSION,
            plural=self.PLURAL_NAME,
            name=name,
        )

    def replace_status(self, body: Dict) -> Dict:
        """Write the status subresource of `body`.

        The body carries `metadata.resourceVersion`, so a concurrent writer
        makes this fail with 409 Conflict.
        """
        meta = body.get("metadata", {})
        return self.replace_custom_object_status(
            self.custom_objects_api,
            namespace=meta.get("namespace"),
            group=self.GROUP_NAME,
            version=self.GROUP_VERSION,
            plural=self.PLURAL_NAME,
            name=meta["name"],
            body=body,
        )

    @classmethod
    def owner_reference(cls, body: Dict) -> Dict:
        """Controller owner reference pointing at `body`."""
        meta = body.get("metadata", {})
        return {
            "apiVersion": cls.api_version(),
            "kind": cls.KIND,
            "name": meta.get("name"),
            "uid": meta.get("uid"),
            "controller": True,
            "blockOwnerDeletion": True,
        }


class SpecialResource(BaseCustomResource):
    """SpecialResource kubernetes access."""

    KIND = "SpecialResource"
    PLURAL_NAME = "specialresources"


class SpecialResourceModule(BaseCustomResource):
    """SpecialResourceModule kubernetes access."""

    KIND = "SpecialResourceModule"
    PLURAL_NAME = "specialresourcemodules"
