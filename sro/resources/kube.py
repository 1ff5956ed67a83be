import logging
from typing import Any, Dict, Iterator, List, Optional, Tuple
from kubernetes import dynamic, watch
from kubernetes.client import ApiException, ApisApi
from sro.resources.base import BaseResource
from sro.utils.objects import cached_property
from sro.utils.errors import already_exists_error

logger = logging.getLogger(__name__)

PLATFORM_OCP = "OCP"
PLATFORM_K8S = "K8S"

_OPENSHIFT_CONFIG_GROUP = "config.openshift.io"


class KubeClient(BaseResource):
    """Generic cluster client over unstructured objects.

    Objects are plain dicts as returned by the API server. Any kind the
    server serves can be read, written and watched.
    """

    @cached_property
    def dynamic_client(self) -> dynamic.DynamicClient:
        return dynamic.DynamicClient(self.api_client)

    @cached_property
    def apis_api(self) -> ApisApi:
        return ApisApi(self.api_client)

    def resource_for(self, api_version: str, kind: str):
        return self.dynamic_client.resources.get(api_version=api_version, kind=kind)

    def get(
        self, api_version: str, kind: str, name: str, namespace: Optional[str] = None
    ) -> Optional[Dict]:
        resource = self.resource_for(api_version, kind)
        try:
            return self.dynamic_client.get(
                resource, name=name, namespace=namespace if resource.namespaced else None
            ).to_dict()
        except ApiException as ex:
            if ex.status == 404:
                return None
            raise

    def list(
        self,
        api_version: str,
        kind: str,
        namespace: Optional[str] = None,
        label_selector: str = None,
    ) -> List[Dict]:
        items, _ = self.snapshot(api_version, kind, namespace, label_selector)
        return items

    def snapshot(
        self,
        api_version: str,
        kind: str,
        namespace: Optional[str] = None,
        label_selector: str = None,
        name: Optional[str] = None,
    ) -> Tuple[List[Dict], Optional[str]]:
        """List objects of a kind along with the list resourceVersion.

        List items come back without apiVersion and kind, both are filled in.
        """
        resource = self.resource_for(api_version, kind)
        result = self.dynamic_client.get(
            resource,
            namespace=namespace if resource.namespaced else None,
            label_selector=label_selector,
            field_selector=f"metadata.name={name}" if name else None,
        ).to_dict()
        items = result.get("items") or []
        for item in items:
            item.setdefault("apiVersion", api_version)
            item.setdefault("kind", kind)
        return items, (result.get("metadata") or {}).get("resourceVersion")

    def create(self, obj: Dict) -> Dict:
        resource = self.resource_for(obj["apiVersion"], obj["kind"])
        namespace = (obj.get("metadata") or {}).get("namespace") if resource.namespaced else None
        return self.dynamic_client.create(resource, body=obj, namespace=namespace).to_dict()

    def update(self, obj: Dict) -> Dict:
        resource = self.resource_for(obj["apiVersion"], obj["kind"])
        namespace = (obj.get("metadata") or {}).get("namespace") if resource.namespaced else None
        return self.dynamic_client.replace(resource, body=obj, namespace=namespace).to_dict()

    def create_or_update(self, obj: Dict) -> str:
        """Create `obj`, replacing the live object when it already exists.

        Returns:
            "created" or "updated"
        """
        try:
            self.create(obj)
            return "created"
        except ApiException as ex:
            if not already_exists_error(ex):
                raise
        meta = obj.get("metadata", {})
        live = self.get(obj["apiVersion"], obj["kind"], meta.get("name"), meta.get("namespace"))
        if live is not None:
            meta["resourceVersion"] = (live.get("metadata") or {}).get("resourceVersion")
            # clusterIP is immutable once allocated
            cluster_ip = (live.get("spec") or {}).get("clusterIP")
            if obj["kind"] == "Service" and cluster_ip:
                obj.setdefault("spec", {})["clusterIP"] = cluster_ip
        self.update(obj)
        return "updated"

    def watch(
        self,
        api_version: str,
        kind: str,
        namespace: Optional[str] = None,
        name: Optional[str] = None,
        resource_version: Optional[str] = None,
        timeout: Optional[int] = None,
        watcher: Optional[watch.Watch] = None,
    ) -> Iterator[Dict[str, Any]]:
        """Stream watch events as {"type": ..., "object": <dict>}."""
        resource = self.resource_for(api_version, kind)
        for event in self.dynamic_client.watch(
            resource,
            namespace=namespace if resource.namespaced else None,
            name=name,
            resource_version=resource_version,
            timeout=timeout,
            watcher=watcher,
        ):
            obj = event.get("raw_object")
            if obj is None:
                obj = event["object"].to_dict()
            yield {"type": event["type"], "object": obj}

    def get_platform(self) -> str:
        """Report OCP when the OpenShift config API group is served, K8S otherwise."""
        groups = self.apis_api.get_api_versions().groups or []
        if any(group.name == _OPENSHIFT_CONFIG_GROUP for group in groups):
            return PLATFORM_OCP
        logger.info("Assuming vanilla Kubernetes, a limited set of resources will be owned")
        return PLATFORM_K8S
