import kopf
import logging
from logging import Logger
from typing import Dict, List, Optional, Tuple
from kubernetes.client import ApiException
from sro.chart.engine import ChartStateEngine
from sro.chart.helmer import Helmer
from sro.cluster.upgrade import ClusterInfo
from sro.common.models.keys import ObjectKey
from sro.controller import (
    TRIGGER_EVENT,
    TRIGGER_RESYNC,
    ReconcileRequests,
    owner_name,
    process_request,
)
from sro.resources import SpecialResource
from sro.state.statusupdater import RECONCILE_FAILED, RECONCILED, StatusUpdater
from sro.types.models import SpecialResourceSpec
from sro.types.schemas import SpecialResourceSpecSchema
from sro.types.settings import REQUEST_POLL_INTERVAL_SECONDS, RESYNC_PERIOD_SECONDS
from sro.utils.errors import StatusUpdateAbandoned, convert_api_exception, forbidden_error

SR_KIND = "SpecialResource"

READY_STATE = "Ready"
ERRORED_STATE = "Errored"

RBAC_MESSAGE = "forbidden - check Role, ClusterRole and Bindings for operator"

NAMESPACE_ANNOTATIONS = {
    "specialresource.openshift.io/wait": "true",
    "openshift.io/cluster-monitoring": "true",
}

#: (group, version, plural) of objects created from SpecialResource charts
OWNED_RESOURCES: List[Tuple[str, str, str]] = [
    ("", "v1", "pods"),
    ("apps", "v1", "daemonsets"),
    ("apps", "v1", "deployments"),
    ("storage.k8s.io", "v1", "csidrivers"),
    ("", "v1", "configmaps"),
    ("", "v1", "serviceaccounts"),
    ("rbac.authorization.k8s.io", "v1", "roles"),
    ("rbac.authorization.k8s.io", "v1", "rolebindings"),
    ("rbac.authorization.k8s.io", "v1", "clusterroles"),
    ("rbac.authorization.k8s.io", "v1", "clusterrolebindings"),
    ("", "v1", "secrets"),
    # OpenShift only, never served on other platforms
    ("image.openshift.io", "v1", "imagestreams"),
    ("build.openshift.io", "v1", "buildconfigs"),
    ("security.openshift.io", "v1", "securitycontextconstraints"),
]

# Requests to reconcile SpecialResources, drained by `process_reconciliation_requests`
requests = ReconcileRequests(SR_KIND, lambda: get_sensor())


def get_sensor():
    """Get sensor from SpecialResource class.

    Returns:
        Sensor instance or None
    """
    return getattr(SpecialResource, "sensor", None)


def load_spec(body: Dict) -> SpecialResourceSpec:
    """Load the spec of a SpecialResource, defaulting its namespace to its name."""
    spec: SpecialResourceSpec = SpecialResourceSpecSchema().load(body.get("spec") or {})
    if not spec.namespace:
        spec.namespace = body["metadata"]["name"]
    return spec


def on_error(
    error: Exception, key: ObjectKey, status_updater: StatusUpdater, logger: Logger
) -> None:
    """Record a failed reconcile on the SpecialResource status."""
    try:
        status_updater.set_as_errored(key, RECONCILE_FAILED, str(error))
    except Exception as e:
        logger.warning(f"Could not mark {key} as errored: {e}")
    status_updater.update_display_state(key, ERRORED_STATE)


class SpecialResourceReconciler:
    """Drives one SpecialResource to its desired state.

    The chart named by the resource is loaded, every state is executed
    against the kernel versions found in the cluster, and the outcome is
    written back to the resource status.
    """

    def __init__(
        self,
        resource: SpecialResource,
        helmer: Helmer,
        engine: ChartStateEngine,
        cluster_info: ClusterInfo,
        status_updater: StatusUpdater,
        logger: Logger = None,
    ):
        self.resource = resource
        self.helmer = helmer
        self.engine = engine
        self.cluster_info = cluster_info
        self.status_updater = status_updater
        self.logger = logger or logging.getLogger(__name__)

    def reconcile(self, key: ObjectKey, trigger_source: str = "manual") -> None:
        """Reconcile the SpecialResource."""
        logger = self.logger
        sensor = get_sensor()
        namespace = key.namespace or ""
        sensor_state = None
        if sensor:
            sensor_state = sensor.on_reconcile_start(SR_KIND, key.name, namespace, trigger_source)

        success = True
        error: Optional[Exception] = None
        try:
            body = self.resource.fetch(key.name, key.namespace)
            if body is None:
                logger.info(f"{SR_KIND} {key} not found, ignoring")
                return
            if body["metadata"].get("deletionTimestamp"):
                logger.info(f"{SR_KIND} {key} is being deleted, ignoring")
                return

            logger.info(f"Reconciling {SR_KIND} {key}")
            try:
                self.synchronize(body)
                self.status_updater.set_as_ready(key, RECONCILED, RECONCILED)
                self.status_updater.update_display_state(key, READY_STATE)
            except StatusUpdateAbandoned:
                raise
            except Exception as e:
                logger.error(f"Failed to reconcile {SR_KIND} {key}: {e}")
                on_error(e, key, self.status_updater, logger)
                raise
        except Exception as e:
            success = False
            error = e
            raise
        finally:
            if sensor:
                sensor.on_reconcile_complete(
                    SR_KIND, key.name, namespace, sensor_state, success, error
                )

    def synchronize(self, body: Dict) -> None:
        spec = load_spec(body)
        self.ensure_namespace(spec.namespace)

        try:
            kernel_map = self.cluster_info.get_cluster_kernel_map(spec.node_selector or {})
        except ApiException as ex:
            convert_api_exception(ex)
        self.logger.debug(f"Cluster kernel map: {kernel_map}")

        chart = self.helmer.load(spec.chart)
        self.engine.reconcile_states(body, chart, spec.set or {}, kernel_map, spec)

    def ensure_namespace(self, name: str) -> None:
        """Create the working namespace of a SpecialResource if it is missing."""
        core_v1_api = self.resource.core_v1_api
        try:
            if self.resource.fetch_namespace(core_v1_api, name) is None:
                self.logger.info(f"Creating namespace {name}")
                self.resource.create_namespace(core_v1_api, name, annotations=NAMESPACE_ANNOTATIONS)
        except ApiException as ex:
            if forbidden_error(ex):
                raise kopf.PermanentError(f"{RBAC_MESSAGE}: {ex.reason}") from ex
            raise


def request_reconciliation(name: str, trigger_source: str = TRIGGER_EVENT) -> None:
    """Request a reconcile of the SpecialResource `name`."""
    requests.request(name, trigger_source)


def is_special_resource(body, memo: kopf.Memo, **_) -> bool:
    return memo.sr_filter.is_primary_kind(body)


def is_owned(body, memo: kopf.Memo, **_) -> bool:
    return memo.sr_filter.is_owned(body)


@kopf.on.resume(SpecialResource.GROUP_NAME, SpecialResource.GROUP_VERSION, SpecialResource.PLURAL_NAME, when=is_special_resource)
@kopf.on.create(SpecialResource.GROUP_NAME, SpecialResource.GROUP_VERSION, SpecialResource.PLURAL_NAME, when=is_special_resource)
@kopf.on.update(SpecialResource.GROUP_NAME, SpecialResource.GROUP_VERSION, SpecialResource.PLURAL_NAME, when=is_special_resource)
def on_change(name, logger: Logger, **kwargs):
    """Requests a reconcile when a SpecialResource is created, changed or found on startup."""
    logger.debug(f"Requesting reconcile of {SR_KIND} {name}")
    request_reconciliation(name, TRIGGER_EVENT)


@kopf.on.event(SpecialResource.GROUP_NAME, SpecialResource.GROUP_VERSION, SpecialResource.PLURAL_NAME, when=is_special_resource)
def on_deleted(type, name, **kwargs):
    """Owned objects are garbage collected through their owner references."""
    if type == "DELETED":
        requests.forget(name)


def on_owned_event(event, type, memo: kopf.Memo, logger: Logger, **kwargs):
    """Requeue the owning SpecialResource when an owned object changes."""
    obj = event.get("object") or {}
    if not memo.sr_filter.on_event(type, obj):
        return
    name = owner_name(obj, SR_KIND)
    if name is None:
        logger.debug(f"No {SR_KIND} owner for {obj.get('kind')} {obj.get('metadata', {}).get('name')}")
        return
    request_reconciliation(name, TRIGGER_EVENT)


for _group, _version, _plural in OWNED_RESOURCES:
    # Core kinds are selected by version and plural alone
    _selector = (_group, _version, _plural) if _group else (_version, _plural)
    kopf.on.event(
        *_selector, id=f"sr-owned-{_plural}", when=is_owned
    )(on_owned_event)


@kopf.timer(
    SpecialResource.GROUP_NAME,
    SpecialResource.GROUP_VERSION,
    SpecialResource.PLURAL_NAME,
    initial_delay=REQUEST_POLL_INTERVAL_SECONDS,
    interval=REQUEST_POLL_INTERVAL_SECONDS,
)
def process_reconciliation_requests(name, retry, memo: kopf.Memo, logger: Logger, stopped, **kwargs):
    """Run the pending reconcile of this SpecialResource, if any."""
    if stopped:
        return
    process_request(requests, name, memo.sr_reconciler.reconcile, retry, memo.conf, logger)


@kopf.timer(
    SpecialResource.GROUP_NAME,
    SpecialResource.GROUP_VERSION,
    SpecialResource.PLURAL_NAME,
    initial_delay=RESYNC_PERIOD_SECONDS,
    interval=RESYNC_PERIOD_SECONDS,
    when=is_special_resource,
)
def periodic_reconciliation(name, **kwargs):
    """Reconcile every SpecialResource once per resync period."""
    request_reconciliation(name, TRIGGER_RESYNC)
