import kopf
import logging
from logging import Logger
from typing import List, Optional, Tuple
from sro.common.models.keys import ObjectKey
from sro.controller import (
    TRIGGER_EVENT,
    TRIGGER_RESYNC,
    TRIGGER_WATCH,
    ReconcileRequests,
    owner_name,
    process_request,
    reconcile_lock,
)
from sro.resources import SpecialResourceModule
from sro.state.statusupdater import StatusUpdater
from sro.types.models import SpecialResourceModuleSpec
from sro.types.schemas import SpecialResourceModuleSpecSchema
from sro.types.settings import REQUEST_POLL_INTERVAL_SECONDS, RESYNC_PERIOD_SECONDS
from sro.watcher.watcher import Watcher

SRM_KIND = "SpecialResourceModule"

#: (group, version, plural) of objects built for SpecialResourceModules, OpenShift only
OWNED_RESOURCES: List[Tuple[str, str, str]] = [
    ("image.openshift.io", "v1", "imagestreams"),
    ("build.openshift.io", "v1", "buildconfigs"),
]

requests = ReconcileRequests(SRM_KIND, lambda: get_sensor())


def get_sensor():
    return getattr(SpecialResourceModule, "sensor", None)


class SpecialResourceModuleReconciler:
    """Keeps the watches declared by a SpecialResourceModule in place."""

    def __init__(
        self,
        resource: SpecialResourceModule,
        watcher: Watcher,
        status_updater: StatusUpdater,
        logger: Logger = None,
    ):
        self.resource = resource
        self.watcher = watcher
        self.status_updater = status_updater
        self.logger = logger or logging.getLogger(__name__)

    def reconcile(self, key: ObjectKey, trigger_source: str = "manual") -> None:
        logger = self.logger
        sensor = get_sensor()
        namespace = key.namespace or ""
        sensor_state = None
        if sensor:
            sensor_state = sensor.on_reconcile_start(SRM_KIND, key.name, namespace, trigger_source)

        success = True
        error: Optional[Exception] = None
        try:
            body = self.resource.fetch(key.name, key.namespace)
            if body is None or body["metadata"].get("deletionTimestamp"):
                logger.info(f"{SRM_KIND} {key} is gone, dropping its watches")
                self.watcher.reconcile_watches(key, [])
                return

            spec: SpecialResourceModuleSpec = SpecialResourceModuleSpecSchema().load(
                body.get("spec") or {}
            )
            logger.info(f"Reconciling {SRM_KIND} {key} with {len(spec.watch or [])} watches")
            self.watcher.reconcile_watches(key, spec.watch or [])

            tracked = self.watcher.tracked_paths(key)
            try:
                self.status_updater.update_status(key, {"watchedResources": tracked})
            except Exception as e:
                logger.warning(f"Could not record watched resources of {key}: {e}")
        except Exception as e:
            success = False
            error = e
            logger.error(f"Failed to update watched resources of {SRM_KIND} {key}: {e}")
            raise
        finally:
            if sensor:
                sensor.on_reconcile_complete(
                    SRM_KIND, key.name, namespace, sensor_state, success, error
                )


def request_reconciliation(name: str, trigger_source: str = TRIGGER_EVENT) -> None:
    requests.request(name, trigger_source)


def on_watched_change(key: ObjectKey) -> None:
    """Watcher callback, a watched field of `key` changed value."""
    request_reconciliation(key.name, TRIGGER_WATCH)


def is_module(body, memo: kopf.Memo, **_) -> bool:
    return memo.srm_filter.is_primary_kind(body)


def is_owned(body, memo: kopf.Memo, **_) -> bool:
    return memo.srm_filter.is_owned(body)


@kopf.on.resume(SpecialResourceModule.GROUP_NAME, SpecialResourceModule.GROUP_VERSION, SpecialResourceModule.PLURAL_NAME, when=is_module)
@kopf.on.create(SpecialResourceModule.GROUP_NAME, SpecialResourceModule.GROUP_VERSION, SpecialResourceModule.PLURAL_NAME, when=is_module)
@kopf.on.update(SpecialResourceModule.GROUP_NAME, SpecialResourceModule.GROUP_VERSION, SpecialResourceModule.PLURAL_NAME, when=is_module)
def on_change(name, logger: Logger, **kwargs):
    logger.debug(f"Requesting reconcile of {SRM_KIND} {name}")
    request_reconciliation(name, TRIGGER_EVENT)


@kopf.on.event(SpecialResourceModule.GROUP_NAME, SpecialResourceModule.GROUP_VERSION, SpecialResourceModule.PLURAL_NAME, when=is_module)
def on_deleted(type, name, memo: kopf.Memo, logger: Logger, **kwargs):
    """Drop the watches of a deleted SpecialResourceModule.

    Timers stop with the object, so the reconcile runs here instead of
    being requested.
    """
    if type != "DELETED":
        return
    requests.forget(name)
    with reconcile_lock:
        memo.srm_reconciler.reconcile(ObjectKey(name), TRIGGER_EVENT)


def on_owned_event(event, type, memo: kopf.Memo, logger: Logger, **kwargs):
    """Requeue the owning SpecialResourceModule when an owned object changes."""
    obj = event.get("object") or {}
    if not memo.srm_filter.on_event(type, obj):
        return
    name = owner_name(obj, SRM_KIND)
    if name is None:
        logger.debug(f"No {SRM_KIND} owner for {obj.get('kind')} {obj.get('metadata', {}).get('name')}")
        return
    request_reconciliation(name, TRIGGER_EVENT)


for _group, _version, _plural in OWNED_RESOURCES:
    kopf.on.event(
        _group, _version, _plural, id=f"srm-owned-{_plural}", when=is_owned
    )(on_owned_event)


@kopf.timer(
    SpecialResourceModule.GROUP_NAME,
    SpecialResourceModule.GROUP_VERSION,
    SpecialResourceModule.PLURAL_NAME,
    initial_delay=REQUEST_POLL_INTERVAL_SECONDS,
    interval=REQUEST_POLL_INTERVAL_SECONDS,
)
def process_reconciliation_requests(name, retry, memo: kopf.Memo, logger: Logger, stopped, **kwargs):
    if stopped:
        return
    process_request(requests, name, memo.srm_reconciler.reconcile, retry, memo.conf, logger)


@kopf.timer(
    SpecialResourceModule.GROUP_NAME,
    SpecialResourceModule.GROUP_VERSION,
    SpecialResourceModule.PLURAL_NAME,
    initial_delay=RESYNC_PERIOD_SECONDS,
    interval=RESYNC_PERIOD_SECONDS,
    when=is_module,
)
def periodic_reconciliation(name, **kwargs):
    request_reconciliation(name, TRIGGER_RESYNC)
