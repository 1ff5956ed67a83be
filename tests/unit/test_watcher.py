"""Unit tests for the path-diff watcher."""

import threading
import pytest
from unittest.mock import Mock, patch
from sro.common.models.keys import ObjectKey
from sro.types.models import SpecialResourceModuleWatch
from sro.watcher.source import KubernetesWatchSource
from sro.watcher.watcher import WatchedResource, Watcher, WatchSource, read_string

MODULE_A = ObjectKey("module-a")
MODULE_B = ObjectKey("module-b")

CLUSTER_VERSION = WatchedResource("config.openshift.io/v1", "ClusterVersion", "version")


def watch(path="status.desired.version", name="version", namespace=None):
    return SpecialResourceModuleWatch(
        api_version="config.openshift.io/v1",
        kind="ClusterVersion",
        name=name,
        namespace=namespace,
        path=path,
    )


def cluster_version(version="4.10.3", image="quay.io/release:4.10.3", name="version"):
    return {
        "apiVersion": "config.openshift.io/v1",
        "kind": "ClusterVersion",
        "metadata": {"name": name},
        "status": {"desired": {"version": version, "image": image}},
    }


@pytest.fixture
def source():
    return Mock(spec=WatchSource)


@pytest.fixture
def enqueue():
    return Mock()


@pytest.fixture
def sensor():
    return Mock()


@pytest.fixture
def watcher(source, enqueue, sensor):
    return Watcher(source, enqueue, sensor)


class TestReconcileWatches:
    def test_registers_one_watch_per_resource(self, watcher, source):
        watcher.reconcile_watches(
            MODULE_A, [watch("status.desired.version"), watch("status.desired.image")]
        )

        source.start.assert_called_once_with(CLUSTER_VERSION, watcher.dispatch)
        assert set(watcher.observations(CLUSTER_VERSION)) == {
            "status.desired.version",
            "status.desired.image",
        }
        assert watcher.tracked_paths(MODULE_A) == 2

    def test_reregistration_is_idempotent(self, watcher, source):
        watcher.reconcile_watches(MODULE_A, [watch()])
        watcher.reconcile_watches(MODULE_A, [watch()])

        source.start.assert_called_once()
        source.stop.assert_not_called()
        assert watcher.observations(CLUSTER_VERSION)["status.desired.version"].subscribers == {MODULE_A}

    def test_ended_watch_is_restarted_on_reregistration(self, watcher, source):
        watcher.reconcile_watches(MODULE_A, [watch()])
        source.is_watching.return_value = False

        watcher.reconcile_watches(MODULE_A, [watch()])

        assert source.start.call_count == 2
        source.is_watching.assert_called_once_with(CLUSTER_VERSION)

    def test_shared_entry_collects_subscribers(self, watcher, source):
        watcher.reconcile_watches(MODULE_A, [watch()])
        watcher.reconcile_watches(MODULE_B, [watch()])

        source.start.assert_called_once()
        observation = watcher.observations(CLUSTER_VERSION)["status.desired.version"]
        assert observation.subscribers == {MODULE_A, MODULE_B}

    def test_dropped_entry_removes_subscriber(self, watcher, source):
        watcher.reconcile_watches(MODULE_A, [watch()])
        watcher.reconcile_watches(MODULE_B, [watch()])

        watcher.reconcile_watches(MODULE_A, [])

        observation = watcher.observations(CLUSTER_VERSION)["status.desired.version"]
        assert observation.subscribers == {MODULE_B}
        source.stop.assert_not_called()

    def test_last_subscriber_leaving_stops_watch(self, watcher, source):
        watcher.reconcile_watches(MODULE_A, [watch()])

        watcher.reconcile_watches(MODULE_A, [])

        source.stop.assert_called_once_with(CLUSTER_VERSION)
        assert watcher.watched_resources() == []
        assert watcher.tracked_paths(MODULE_A) == 0

    def test_watch_kept_while_another_path_remains(self, watcher, source):
        watcher.reconcile_watches(
            MODULE_A, [watch("status.desired.version"), watch("status.desired.image")]
        )

        watcher.reconcile_watches(MODULE_A, [watch("status.desired.image")])

        source.stop.assert_not_called()
        assert set(watcher.observations(CLUSTER_VERSION)) == {"status.desired.image"}

    def test_other_modules_entries_untouched(self, watcher, source):
        watcher.reconcile_watches(MODULE_A, [watch(name="version")])
        watcher.reconcile_watches(MODULE_B, [watch(name="other")])

        watcher.reconcile_watches(MODULE_A, [watch(name="version")])

        assert len(watcher.watched_resources()) == 2

    def test_failed_registration_is_not_recorded(self, watcher, source):
        source.start.side_effect = RuntimeError("no such kind")

        with pytest.raises(RuntimeError):
            watcher.reconcile_watches(MODULE_A, [watch()])
        assert watcher.watched_resources() == []


class TestObjectEvents:
    def test_first_observation_emits(self, watcher, sensor):
        watcher.reconcile_watches(MODULE_A, [watch()])

        assert watcher.on_object_event(cluster_version()) == [MODULE_A]
        sensor.on_watch_triggered.assert_called_once_with(
            "ClusterVersion", "version", "status.desired.version", 1
        )

    def test_unchanged_value_emits_nothing(self, watcher):
        watcher.reconcile_watches(MODULE_A, [watch()])
        watcher.on_object_event(cluster_version())

        assert watcher.on_object_event(cluster_version()) == []

    def test_changed_value_emits_once_per_subscriber(self, watcher):
        watcher.reconcile_watches(MODULE_A, [watch()])
        watcher.reconcile_watches(MODULE_B, [watch()])
        watcher.on_object_event(cluster_version("4.10.3"))

        requests = watcher.on_object_event(cluster_version("4.10.4"))

        assert sorted(requests) == [MODULE_A, MODULE_B]
        assert watcher.observations(CLUSTER_VERSION)["status.desired.version"].value == "4.10.4"

    def test_removed_subscriber_is_not_requeued(self, watcher):
        watcher.reconcile_watches(MODULE_A, [watch()])
        watcher.reconcile_watches(MODULE_B, [watch()])
        watcher.on_object_event(cluster_version("4.10.3"))

        watcher.reconcile_watches(MODULE_A, [])

        assert watcher.on_object_event(cluster_version("4.10.4")) == [MODULE_B]

    def test_only_changed_paths_emit(self, watcher):
        watcher.reconcile_watches(MODULE_A, [watch("status.desired.version")])
        watcher.reconcile_watches(MODULE_B, [watch("status.desired.image")])
        watcher.on_object_event(cluster_version("4.10.3", "img-1"))

        assert watcher.on_object_event(cluster_version("4.10.3", "img-2")) == [MODULE_B]

    def test_missing_path_is_skipped(self, watcher):
        watcher.reconcile_watches(
            MODULE_A, [watch("status.history.version"), watch("status.desired.version")]
        )

        assert watcher.on_object_event(cluster_version()) == [MODULE_A]
        observations = watcher.observations(CLUSTER_VERSION)
        assert observations["status.history.version"].value is None

    def test_non_string_value_is_skipped(self, watcher):
        watcher.reconcile_watches(MODULE_A, [watch("status.desired")])
        assert watcher.on_object_event(cluster_version()) == []

    def test_untracked_object_is_ignored(self, watcher):
        watcher.reconcile_watches(MODULE_A, [watch()])
        assert watcher.on_object_event(cluster_version(name="other")) == []

    def test_dispatch_enqueues_requests(self, watcher, enqueue):
        watcher.reconcile_watches(MODULE_A, [watch()])

        watcher.dispatch(cluster_version())

        enqueue.assert_called_once_with(MODULE_A)

    def test_event_during_registration_is_serialized(self, enqueue):
        """An event delivered while start() runs is handled after the subscriber is recorded."""
        delivered = []

        class EagerSource(WatchSource):
            def start(self, resource, callback):
                thread = threading.Thread(target=lambda: delivered.append(callback(cluster_version())))
                thread.start()
                self.thread = thread

            def stop(self, resource):
                pass

        source = EagerSource()
        watcher = Watcher(source, enqueue)

        watcher.reconcile_watches(MODULE_A, [watch()])
        source.thread.join(5)

        enqueue.assert_called_once_with(MODULE_A)


class TestKubernetesWatchSource:
    def test_start_and_stop(self):
        kube = Mock()
        source = KubernetesWatchSource(kube, timeout_seconds=10)
        callback = Mock()

        with patch("sro.watcher.source.threading.Thread") as thread_cls, patch(
            "sro.watcher.source.ResourceStream"
        ) as stream_cls:
            source.start(CLUSTER_VERSION, callback)
            source.start(CLUSTER_VERSION, callback)

            thread_cls.return_value.start.assert_called_once()
            kwargs = stream_cls.call_args.kwargs
            assert kwargs["name"] == "version"
            assert kwargs["namespace"] is None

            assert source.is_watching(CLUSTER_VERSION)
            _, stop_event = source._streams[CLUSTER_VERSION]
            source.stop(CLUSTER_VERSION)

            assert stop_event.is_set()
            assert not source.is_watching(CLUSTER_VERSION)
            stream_cls.return_value.stop.assert_called_once()

    def test_events_reach_callback(self):
        kube = Mock()
        source = KubernetesWatchSource(kube)
        callback = Mock()

        with patch("sro.watcher.source.threading.Thread"), patch(
            "sro.watcher.source.ResourceStream"
        ) as stream_cls:
            source.start(CLUSTER_VERSION, callback)

        handler = stream_cls.call_args.args[3]
        on_sync = stream_cls.call_args.kwargs["on_sync"]
        obj = cluster_version()
        on_sync([obj])
        handler("MODIFIED", obj)
        handler("DELETED", obj)

        assert callback.call_count == 2

    def test_ended_stream_can_be_started_again(self):
        source = KubernetesWatchSource(Mock())

        with patch("sro.watcher.source.threading.Thread") as thread_cls, patch(
            "sro.watcher.source.ResourceStream"
        ) as stream_cls:
            source.start(CLUSTER_VERSION, Mock())
            # Stream gives up, e.g. after a 403
            thread_cls.call_args.kwargs["target"]()

            stream_cls.return_value.run.assert_called_once()
            assert not source.is_watching(CLUSTER_VERSION)

            source.start(CLUSTER_VERSION, Mock())

        assert thread_cls.return_value.start.call_count == 2
        assert source.is_watching(CLUSTER_VERSION)

    def test_ended_stream_keeps_its_replacement(self):
        source = KubernetesWatchSource(Mock())

        with patch("sro.watcher.source.threading.Thread") as thread_cls, patch(
            "sro.watcher.source.ResourceStream", side_effect=lambda *args, **kwargs: Mock()
        ):
            source.start(CLUSTER_VERSION, Mock())
            first_target = thread_cls.call_args.kwargs["target"]
            source.stop(CLUSTER_VERSION)
            source.start(CLUSTER_VERSION, Mock())

            first_target()

        assert source.is_watching(CLUSTER_VERSION)


class TestReadString:
    obj = {"status": {"desired": {"version": "4.10.3"}, "count": 3, "history": ["a"]}}

    def test_dotted_path(self):
        assert read_string(self.obj, "status.desired.version") == "4.10.3"

    def test_leading_dot(self):
        assert read_string(self.obj, ".status.desired.version") == "4.10.3"

    @pytest.mark.parametrize("path", ["status.missing", "status.count", "status.desired.version.major", "", "."])
    def test_unreadable_paths(self, path):
        assert read_string(self.obj, path) is None
