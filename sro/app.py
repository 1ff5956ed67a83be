import kopf
import logging
import sro.handlers.probes as probes
import sro.handlers.specialresource as specialresource
import sro.handlers.specialresourcemodule as specialresourcemodule
from kubernetes import config
from kubernetes.client import ApiClient
from sro.chart.engine import ChartStateEngine
from sro.chart.helmer import HelmCliHelmer
from sro.cluster.nodes import NodeLabeler
from sro.cluster.upgrade import ClusterInfo
from sro.common.models.labels import Labels
from sro.filter.filter import EventFilter, GroupVersionKind
from sro.resources import (
    BaseResource,
    KubeClient,
    Lifecycle,
    SpecialResource,
    SpecialResourceModule,
    Storage,
)
from sro.sensors import PrometheusMonitor, SensorDelegate, init_metrics_server
from sro.state.statusupdater import StatusUpdater
from sro.types.settings import Settings
from sro.utils.log import setup_logging
from sro.watcher import KubernetesWatchSource, Watcher

SPECIAL_RESOURCE_GVK = GroupVersionKind(
    SpecialResource.GROUP_NAME, SpecialResource.GROUP_VERSION, SpecialResource.KIND
)
SPECIAL_RESOURCE_MODULE_GVK = GroupVersionKind(
    SpecialResourceModule.GROUP_NAME,
    SpecialResourceModule.GROUP_VERSION,
    SpecialResourceModule.KIND,
)


def load_kube_config(logger: logging.Logger) -> None:
    """Load Kubernetes config - in-cluster first, then local kubeconfig."""
    try:
        config.load_incluster_config()
        logger.info("Loaded in-cluster Kubernetes configuration")
    except config.ConfigException:
        logger.info("In-cluster config not found, trying local kubeconfig")
        try:
            config.load_kube_config()
            logger.info("Loaded local Kubernetes configuration")
        except config.ConfigException as e:
            logger.error(f"Failed to load Kubernetes configuration: {e}")
            raise


def build(memo: kopf.Memo, conf: Settings, sensor: SensorDelegate, logger: logging.Logger) -> None:
    """Create the reconcilers and event filters the handlers find in `memo`."""
    kube = KubeClient()
    logger.info(f"Running on platform {kube.get_platform()}")

    storage = Storage(conf.operator_namespace, conf.lifecycle_config_map)
    lifecycle = Lifecycle(storage)

    special_resource = SpecialResource()
    sr_status = StatusUpdater(special_resource, sensor)
    helmer = HelmCliHelmer(conf.charts_dir, kube, conf.helm_binary)
    engine = ChartStateEngine(helmer, sr_status, sensor, NodeLabeler())
    memo.sr_reconciler = specialresource.SpecialResourceReconciler(
        special_resource, helmer, engine, ClusterInfo(), sr_status
    )
    memo.sr_filter = EventFilter(SPECIAL_RESOURCE_GVK, lifecycle, storage)

    module = SpecialResourceModule()
    memo.watch_source = KubernetesWatchSource(kube, conf.watch_timeout_seconds)
    memo.watcher = Watcher(memo.watch_source, specialresourcemodule.on_watched_change, sensor)
    memo.srm_reconciler = specialresourcemodule.SpecialResourceModuleReconciler(
        module, memo.watcher, StatusUpdater(module, sensor)
    )
    memo.srm_filter = EventFilter(
        SPECIAL_RESOURCE_MODULE_GVK, owned_label=Labels.MODULE_OWNED_LABEL
    )


# Configure Kopf settings
@kopf.on.startup()
def setup(settings: kopf.OperatorSettings, memo: kopf.Memo, logger: logging.Logger, **kwargs):
    load_kube_config(logger)

    memo.conf = Settings()

    # One ApiClient for all resources to prevent connection leaks
    shared_client = ApiClient()
    BaseResource.shared_api_client = shared_client
    logger.info("Shared Kubernetes API client initialized")

    sensor_delegate = SensorDelegate()
    sensor_delegate.add(PrometheusMonitor())
    memo.sensor = sensor_delegate
    SpecialResource.sensor = sensor_delegate
    SpecialResourceModule.sensor = sensor_delegate
    logger.info("Sensor infrastructure initialized with PrometheusMonitor")

    if memo.conf.metrics_enabled:
        try:
            init_metrics_server(memo.conf.metrics_port)
        except Exception as e:
            logger.error(f"Failed to start metrics server: {e}")
            # Don't fail operator startup if metrics server fails
            logger.warning("Continuing without metrics server")

    build(memo, memo.conf, sensor_delegate, logger)

    settings.batching.worker_limit = memo.conf.worker_limit

    # Only warnings and errors become Kubernetes events
    settings.posting.enabled = True
    settings.posting.level = logging.WARNING

    settings.persistence.progress_storage = kopf.AnnotationsProgressStorage(
        prefix=SpecialResource.GROUP_NAME
    )
    settings.persistence.diffbase_storage = kopf.AnnotationsDiffBaseStorage(
        prefix=SpecialResource.GROUP_NAME,
        key="last-handled-configuration",
    )
    settings.watching.server_timeout = memo.conf.watch_timeout_seconds


@kopf.on.cleanup()
def cleanup(memo: kopf.Memo, logger: logging.Logger, **kwargs):
    """Cleanup handler for operator shutdown."""
    logger.info("Shutting down operator...")

    watch_source = getattr(memo, "watch_source", None)
    if watch_source is not None:
        watch_source.stop_all()

    if BaseResource.shared_api_client is not None:
        BaseResource.shared_api_client.close()
        BaseResource.shared_api_client = None
        logger.info("Shared API client closed")

    logger.info("Operator shutdown complete")


def main() -> None:
    conf = Settings()
    setup_logging(conf.log_level, conf.log_format)
    kopf.run(clusterwide=True)


__all__ = [
    "probes",
    "specialresource",
    "specialresourcemodule",
]
