import os
from typing import Any

_TRUE, _FALSE = {"True", "true", "yes", "1"}, {"False", "false", "no", "0"}


def _getenv(name: str, *default: Any) -> Any:
    try:
        v = os.environ[name]
        if v in _TRUE:
            return True
        elif v in _FALSE:
            return False
        else:
            return v
    except KeyError:
        pass
    if default:
        return default[0]
    raise KeyError(name)


# ------------------------------------------------
# ---- Defaults and environment variables ----
# ------------------------------------------------

#: Namespace the operator runs in; holds the lifecycle bookkeeping ConfigMap
OPERATOR_NAMESPACE = _getenv("OPERATOR_NAMESPACE", "openshift-special-resource-operator")

#: Name of the ConfigMap used as the lifecycle bookkeeping side-table
LIFECYCLE_CONFIG_MAP = _getenv("LIFECYCLE_CONFIG_MAP", "special-resource-lifecycle")

#: Local chart repository root
CHARTS_DIR = _getenv("CHARTS_DIR", "/charts")

#: Helm executable used to render charts
HELM_BINARY = _getenv("HELM_BINARY", "helm")

#: Seconds between generic resync events for every SpecialResource
RESYNC_PERIOD_SECONDS = int(_getenv("RESYNC_PERIOD_SECONDS", 600))

#: Server side timeout of a single watch stream before it is reopened
WATCH_TIMEOUT_SECONDS = int(_getenv("WATCH_TIMEOUT_SECONDS", 300))

#: First delay before a failed reconcile is retried; doubles on each failure
REQUEUE_BASE_DELAY_SECONDS = float(_getenv("REQUEUE_BASE_DELAY_SECONDS", 5.0))

#: Upper bound of the retry delay for a failing reconcile
REQUEUE_MAX_DELAY_SECONDS = float(_getenv("REQUEUE_MAX_DELAY_SECONDS", 300.0))

#: Seconds between checks for pending reconcile requests of one resource
REQUEST_POLL_INTERVAL_SECONDS = float(_getenv("REQUEST_POLL_INTERVAL_SECONDS", 1.0))

#: Concurrent kopf workers per watched kind
WORKER_LIMIT = int(_getenv("WORKER_LIMIT", 10))

#: Expose prometheus metrics
METRICS_ENABLED = bool(_getenv("METRICS_ENABLED", True))

#: Port of the prometheus metrics endpoint
METRICS_PORT = int(_getenv("METRICS_PORT", 8000))

#: Root log level
LOG_LEVEL = _getenv("LOG_LEVEL", "INFO")

#: Log line format, one of `plain` or `full`
LOG_FORMAT = _getenv("LOG_FORMAT", "plain")


class Settings:
    """Operator settings"""

    operator_namespace: str = OPERATOR_NAMESPACE
    lifecycle_config_map: str = LIFECYCLE_CONFIG_MAP
    charts_dir: str = CHARTS_DIR
    helm_binary: str = HELM_BINARY
    resync_period_seconds: int = RESYNC_PERIOD_SECONDS
    watch_timeout_seconds: int = WATCH_TIMEOUT_SECONDS
    requeue_base_delay_seconds: float = REQUEUE_BASE_DELAY_SECONDS
    requeue_max_delay_seconds: float = REQUEUE_MAX_DELAY_SECONDS
    request_poll_interval_seconds: float = REQUEST_POLL_INTERVAL_SECONDS
    worker_limit: int = WORKER_LIMIT
    metrics_enabled: bool = METRICS_ENABLED
    metrics_port: int = METRICS_PORT
    log_level: str = LOG_LEVEL
    log_format: str = LOG_FORMAT

    def __init__(
        self,
        *args,
        operator_namespace: str = None,
        lifecycle_config_map: str = None,
        charts_dir: str = None,
        helm_binary: str = None,
        resync_period_seconds: int = None,
        watch_timeout_seconds: int = None,
        requeue_base_delay_seconds: float = None,
        requeue_max_delay_seconds: float = None,
        worker_limit: int = None,
        metrics_enabled: bool = None,
        metrics_port: int = None,
        log_level: str = None,
        log_format: str = None,
        **kwargs,
    ):
        if operator_namespace is not None:
            self.operator_namespace = operator_namespace

        if lifecycle_config_map is not None:
            self.lifecycle_config_map = lifecycle_config_map

        if charts_dir is not None:
            self.charts_dir = charts_dir

        if helm_binary is not None:
            self.helm_binary = helm_binary

        if resync_period_seconds is not None:
            self.resync_period_seconds = resync_period_seconds

        if watch_timeout_seconds is not None:
            self.watch_timeout_seconds = watch_timeout_seconds

        if requeue_base_delay_seconds is not None:
            self.requeue_base_delay_seconds = requeue_base_delay_seconds

        if requeue_max_delay_seconds is not None:
            self.requeue_max_delay_seconds = requeue_max_delay_seconds

        if worker_limit is not None:
            self.worker_limit = worker_limit

        if metrics_enabled is not None:
            self.metrics_enabled = metrics_enabled

        if metrics_port is not None:
            self.metrics_port = metrics_port

        if log_level is not None:
            self.log_level = log_level

        if log_format is not None:
            self.log_format = log_format
