"""Unit tests for the reconcile event filter."""

import copy
import pytest
from unittest.mock import Mock
from sro.common.models.labels import Labels
from sro.filter.filter import EventFilter, GroupVersionKind, split_api_version
from sro.utils.helpers import compute_hash

PRIMARY = GroupVersionKind("sro.openshift.io", "v1beta1", "SpecialResource")


def special_resource(generation=1, resource_version="100"):
    return {
        "apiVersion": "sro.openshift.io/v1beta1",
        "kind": "SpecialResource",
        "metadata": {
            "name": "simple-kmod",
            "generation": generation,
            "resourceVersion": resource_version,
        },
    }


def owned_daemonset(generation=1, resource_version="200", affine=False):
    obj = {
        "apiVersion": "apps/v1",
        "kind": "DaemonSet",
        "metadata": {
            "name": "driver",
            "namespace": "simple-kmod",
            "generation": generation,
            "resourceVersion": resource_version,
            "ownerReferences": [
                {"apiVersion": "sro.openshift.io/v1beta1", "kind": "SpecialResource", "name": "simple-kmod"}
            ],
        },
        "spec": {"selector": {"matchLabels": {"app": "driver"}}},
    }
    if affine:
        obj["metadata"]["annotations"] = {Labels.KERNEL_AFFINE_ANNOTATION: "true"}
    return obj


def unrelated_config_map(generation=None, resource_version="300"):
    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {"name": "other", "namespace": "default", "resourceVersion": resource_version},
    }


@pytest.fixture
def lifecycle():
    return Mock()


@pytest.fixture
def storage():
    return Mock()


@pytest.fixture
def event_filter(lifecycle, storage):
    return EventFilter(PRIMARY, lifecycle=lifecycle, storage=storage)


class TestKindDetection:
    def test_split_api_version(self):
        assert split_api_version("sro.openshift.io/v1beta1") == ("sro.openshift.io", "v1beta1")
        assert split_api_version("v1") == ("", "v1")

    def test_primary_kind_by_group_and_kind(self, event_filter):
        assert event_filter.is_primary_kind(special_resource())

    def test_version_is_ignored(self, event_filter):
        obj = special_resource()
        obj["apiVersion"] = "sro.openshift.io/v1"
        assert event_filter.is_primary_kind(obj)

    def test_same_kind_other_group(self, event_filter):
        obj = special_resource()
        obj["apiVersion"] = "example.com/v1"
        assert not event_filter.is_primary_kind(obj)

    def test_kindless_object_falls_back_to_self_link(self, event_filter):
        obj = {
            "metadata": {
                "name": "simple-kmod",
                "selfLink": "/apis/sro.openshift.io/v1beta1/specialresources/simple-kmod",
            }
        }
        assert event_filter.is_primary_kind(obj)

    def test_kindless_owned_object_is_not_primary(self, event_filter):
        obj = owned_daemonset()
        del obj["kind"]
        obj["metadata"]["selfLink"] = "/apis/sro.openshift.io/v1beta1/whatever"
        assert not event_filter.is_primary_kind(obj)

    def test_owned_by_owner_reference(self, event_filter):
        assert event_filter.is_owned(owned_daemonset())

    def test_owned_by_label(self, event_filter):
        obj = unrelated_config_map()
        obj["metadata"]["labels"] = {Labels.OWNED_LABEL: "true"}
        assert event_filter.is_owned(obj)
        assert not event_filter.is_owned(unrelated_config_map())

    def test_accepts_api_client_models(self, event_filter):
        model = Mock()
        model.to_dict.return_value = special_resource()
        assert event_filter.is_primary_kind(model)


class TestCreateAndGeneric:
    def test_create(self, event_filter):
        assert event_filter.on_create(special_resource())
        assert event_filter.on_create(owned_daemonset())
        assert not event_filter.on_create(unrelated_config_map())

    def test_generic(self, event_filter):
        assert event_filter.on_generic(special_resource())
        assert event_filter.on_generic(owned_daemonset())
        assert not event_filter.on_generic(unrelated_config_map())


class TestUpdate:
    @pytest.mark.parametrize(
        "build",
        [special_resource, owned_daemonset, unrelated_config_map, lambda: owned_daemonset(affine=True)],
    )
    def test_unchanged_generation_and_version_is_dropped(self, event_filter, build):
        old = build()
        new = copy.deepcopy(old)
        assert not event_filter.on_update(old, new)

    def test_primary_generation_change(self, event_filter):
        assert event_filter.on_update(special_resource(1, "100"), special_resource(2, "101"))

    def test_primary_status_only_change(self, event_filter):
        assert not event_filter.on_update(special_resource(1, "100"), special_resource(1, "101"))

    def test_owned_daemonset_generation_change_records_pods(self, event_filter, lifecycle):
        new = owned_daemonset(2, "201")

        assert event_filter.on_update(owned_daemonset(1, "200"), new)
        lifecycle.update_daemonset_pods.assert_called_once_with(new)

    def test_affine_resource_version_change(self, event_filter, lifecycle):
        old = owned_daemonset(1, "200", affine=True)
        new = owned_daemonset(1, "201", affine=True)

        assert event_filter.on_update(old, new)
        lifecycle.update_daemonset_pods.assert_not_called()

    def test_affine_generation_change_records_pods(self, event_filter, lifecycle):
        old = owned_daemonset(1, "200", affine=True)
        new = owned_daemonset(2, "201", affine=True)

        assert event_filter.on_update(old, new)
        lifecycle.update_daemonset_pods.assert_called_once_with(new)

    def test_non_affine_owned_status_change_is_dropped(self, event_filter):
        assert not event_filter.on_update(owned_daemonset(1, "200"), owned_daemonset(1, "201"))

    def test_bookkeeping_failure_does_not_change_decision(self, event_filter, lifecycle):
        lifecycle.update_daemonset_pods.side_effect = RuntimeError("boom")
        assert event_filter.on_update(owned_daemonset(1, "200"), owned_daemonset(2, "201"))

    def test_unrelated_change(self, event_filter):
        old = unrelated_config_map(resource_version="1")
        old["metadata"]["generation"] = 1
        new = unrelated_config_map(resource_version="2")
        new["metadata"]["generation"] = 2
        assert not event_filter.on_update(old, new)


class TestDelete:
    def test_primary_delete(self, event_filter, storage):
        assert event_filter.on_delete(special_resource())
        storage.delete.assert_not_called()

    def test_owned_delete_evicts_bookkeeping_entry(self, event_filter, storage):
        assert event_filter.on_delete(owned_daemonset())
        storage.delete.assert_called_once_with(compute_hash("simple-kmod" + "driver"))

    def test_eviction_failure_still_admits(self, event_filter, storage):
        storage.delete.side_effect = RuntimeError("boom")
        assert event_filter.on_delete(owned_daemonset())

    def test_unrelated_delete(self, event_filter, storage):
        assert not event_filter.on_delete(unrelated_config_map())
        storage.delete.assert_not_called()

    def test_without_bookkeeping(self):
        assert EventFilter(PRIMARY).on_delete(owned_daemonset())


class TestRawEvents:
    def test_first_event_counts_as_create(self, event_filter):
        assert event_filter.on_event("ADDED", owned_daemonset())

    def test_first_event_of_unrelated_object(self, event_filter):
        assert not event_filter.on_event("MODIFIED", unrelated_config_map())

    def test_update_compares_with_previous_event(self, event_filter, lifecycle):
        event_filter.on_event("ADDED", owned_daemonset())

        assert not event_filter.on_event("MODIFIED", owned_daemonset())
        assert event_filter.on_event("MODIFIED", owned_daemonset(generation=2, resource_version="201"))
        lifecycle.update_daemonset_pods.assert_called_once()

    def test_later_changes_to_the_event_object_are_not_seen(self, event_filter):
        obj = owned_daemonset()
        event_filter.on_event("ADDED", obj)
        obj["metadata"]["generation"] = 2

        assert not event_filter.on_event("MODIFIED", owned_daemonset())

    def test_delete_forgets_object(self, event_filter, storage):
        event_filter.on_event("ADDED", owned_daemonset())

        assert event_filter.on_event("DELETED", owned_daemonset())
        storage.delete.assert_called_once()

        # Recreated under the same name, seen as new
        assert event_filter.on_event("ADDED", owned_daemonset())
