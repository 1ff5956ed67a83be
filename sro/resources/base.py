from typing import Dict, List, Optional
from sro.utils.objects import cached_property
from sro.utils.errors import already_exists_error
from kubernetes.client import (
    ApiClient,
    ApiException,
    CoreV1Api,
    CustomObjectsApi,
    V1ConfigMap,
    V1Namespace,
    V1ObjectMeta,
)


class BaseResource:
    """Base resource model.

    Wraps the kubernetes API groups used by the operator. A single
    `ApiClient` is shared by all resources once the operator starts.
    """

    OPERATOR_NAME = "special-resource-operator"

    shared_api_client: Optional[ApiClient] = None

    @cached_property
    def api_client(self) -> ApiClient:
        return self.shared_api_client or ApiClient()

    @cached_property
    def core_v1_api(self) -> CoreV1Api:
        return CoreV1Api(self.api_client)

    @cached_property
    def custom_objects_api(self) -> CustomObjectsApi:
        return CustomObjectsApi(self.api_client)

    def fetch_config_map(
        self, core_v1_api: CoreV1Api, name: str, namespace: str
    ) -> Optional[V1ConfigMap]:
        """Retrieve the latest state of a config map"""
        try:
            return core_v1_api.read_namespaced_config_map(name=name, namespace=namespace)
        except ApiException as ex:
            if ex.status == 404:
                return None
            raise

    def create_config_map(
        self, core_v1_api: CoreV1Api, namespace: str, config_map: V1ConfigMap
    ) -> None:
        try:
            core_v1_api.create_namespaced_config_map(namespace=namespace, body=config_map)
        except ApiException as ex:
            if already_exists_error(ex):
                self.replace_config_map(
                    core_v1_api,
                    name=config_map.metadata.name,
                    namespace=namespace,
                    config_map=config_map,
                )
            else:
                raise

    def replace_config_map(
        self, core_v1_api: CoreV1Api, name: str, namespace: str, config_map: V1ConfigMap
    ) -> None:
        core_v1_api.replace_namespaced_config_map(
            name=name,
            namespace=namespace,
            body=config_map,
        )

    def patch_config_map(
        self, core_v1_api: CoreV1Api, name: str, namespace: str, patch: Dict
    ) -> None:
        core_v1_api.patch_namespaced_config_map(
            name=name,
            namespace=namespace,
            body=patch,
        )

    def fetch_namespace(self, core_v1_api: CoreV1Api, name: str) -> Optional[V1Namespace]:
        try:
            return core_v1_api.read_namespace(name=name)
        except ApiException as ex:
            if ex.status == 404:
                return None
            raise

    def create_namespace(
        self, core_v1_api: CoreV1Api, name: str, annotations: Dict[str, str] = None
    ) -> None:
        namespace = V1Namespace(
            metadata=V1ObjectMeta(name=name, annotations=annotations)
        )
        try:
            core_v1_api.create_namespace(body=namespace)
        except ApiException as ex:
            if not already_exists_error(ex):
                raise

    def list_pods(
        self, core_v1_api: CoreV1Api, namespace: str, label_selector: str = None
    ) -> List:
        return core_v1_api.list_namespaced_pod(
            namespace=namespace, label_selector=label_selector
        ).items

    def list_nodes(self, core_v1_api: CoreV1Api, label_selector: str = None) -> List:
        return core_v1_api.list_node(label_selector=label_selector).items

    def patch_node_labels(
        self, core_v1_api: CoreV1Api, name: str, labels: Dict[str, str]
    ) -> None:
        core_v1_api.patch_node(name=name, body={"metadata": {"labels": labels}})

    def get_custom_object(
        self,
        custom_objects_api: CustomObjectsApi,
        namespace: Optional[str],
        group: str,
        version: str,
        plural: str,
        name: str,
    ) -> Optional[Dict]:
        try:
            if namespace:
                return custom_objects_api.get_namespaced_custom_object(
                    group=group,
                    version=version,
                    namespace=namespace,
                    plural=plural,
                    name=name,
                )
            return custom_objects_api.get_cluster_custom_object(
                group=group,
                version=version,
                plural=plural,
                name=name,
            )
        except ApiException as ex:
            if ex.status == 404:
                return None
            raise

    def replace_custom_object_status(
        self,
        custom_objects_api: CustomObjectsApi,
        namespace: Optional[str],
        group: str,
        version: str,
        plural: str,
        name: str,
        body: Dict,
    ) -> Dict:
        if namespace:
            return custom_objects_api.replace_namespaced_custom_object_status(
                group=group,
                version=version,
                namespace=namespace,
                plural=plural,
                name=name,
                body=body,
            )
        return custom_objects_api.replace_cluster_custom_object_status(
            group=group,
            version=version,
            plural=plural,
            name=name,
            body=body,
        )
