"""Unit tests for reconcile requests and their processing."""

import kopf
import pytest
from unittest.mock import Mock
from sro.common.models.keys import ObjectKey
from sro.controller import (
    TRIGGER_EVENT,
    TRIGGER_REQUEUE,
    TRIGGER_RESYNC,
    ReconcileRequests,
    backoff_delay,
    owner_name,
    process_request,
    reconcile_lock,
)
from sro.types.settings import Settings
from sro.utils.errors import ConfigurationError, StatusUpdateAbandoned

NAME = "simple-kmod"
KEY = ObjectKey(NAME)


def owned_daemonset(owner_kind="SpecialResource"):
    return {
        "apiVersion": "apps/v1",
        "kind": "DaemonSet",
        "metadata": {
            "name": "driver",
            "namespace": NAME,
            "ownerReferences": [
                {"apiVersion": "sro.openshift.io/v1beta1", "kind": owner_kind, "name": NAME}
            ],
        },
    }


@pytest.fixture
def settings():
    return Settings(requeue_base_delay_seconds=1.0, requeue_max_delay_seconds=4.0)


@pytest.fixture
def sensor():
    return Mock()


@pytest.fixture
def requests(sensor):
    return ReconcileRequests("SpecialResource", lambda: sensor)


@pytest.fixture
def reconcile():
    return Mock()


class TestReconcileRequests:
    def test_request_deduplicates(self, requests):
        assert requests.request(NAME)
        assert not requests.request(NAME, TRIGGER_RESYNC)
        assert len(requests) == 1
        assert NAME in requests

    def test_request_records_queue_depth_once(self, requests, sensor):
        requests.request(NAME)
        requests.request(NAME)

        sensor.on_reconcile_queued.assert_called_once_with("SpecialResource", NAME, "", 1)

    def test_take_returns_first_trigger(self, requests, sensor):
        requests.request(NAME, TRIGGER_RESYNC)
        requests.request(NAME, TRIGGER_EVENT)

        assert requests.take(NAME) == TRIGGER_RESYNC
        assert NAME not in requests
        sensor.on_reconcile_dequeued.assert_called_once()

    def test_take_without_request(self, requests, sensor):
        assert requests.take(NAME) is None
        sensor.on_reconcile_dequeued.assert_not_called()

    def test_forget(self, requests):
        requests.request(NAME)
        requests.forget(NAME)
        requests.forget("other")
        assert len(requests) == 0

    def test_without_sensor(self):
        requests = ReconcileRequests("SpecialResource")
        assert requests.request(NAME)
        assert requests.take(NAME) == TRIGGER_EVENT


class TestBackoffDelay:
    def test_doubles_up_to_max(self, settings):
        assert [backoff_delay(retry, settings) for retry in range(4)] == [1.0, 2.0, 4.0, 4.0]

    def test_negative_retry(self, settings):
        assert backoff_delay(-1, settings) == 1.0


class TestOwnerName:
    def test_owner_of_kind(self):
        assert owner_name(owned_daemonset(), "SpecialResource") == NAME

    def test_other_owner_kind(self):
        assert owner_name(owned_daemonset("SpecialResourceModule"), "SpecialResource") is None

    def test_no_owner(self):
        assert owner_name({"metadata": {"name": "x"}}, "SpecialResource") is None
        assert owner_name({}, "SpecialResource") is None


class TestProcessRequest:
    def test_nothing_pending(self, requests, reconcile, settings):
        assert not process_request(requests, NAME, reconcile, 0, settings)
        reconcile.assert_not_called()

    def test_reconciles_with_trigger(self, requests, reconcile, settings):
        requests.request(NAME, TRIGGER_RESYNC)

        assert process_request(requests, NAME, reconcile, 0, settings)

        reconcile.assert_called_once_with(KEY, TRIGGER_RESYNC)
        assert NAME not in requests

    def test_reconcile_holds_the_shared_lock(self, requests, settings):
        held = []
        requests.request(NAME)

        process_request(requests, NAME, lambda key, trigger: held.append(reconcile_lock.locked()), 0, settings)

        assert held == [True]
        assert not reconcile_lock.locked()

    def test_request_made_during_reconcile_runs_again(self, requests, settings):
        reconcile = Mock(side_effect=lambda key, trigger: requests.request(NAME, TRIGGER_EVENT))
        requests.request(NAME)

        process_request(requests, NAME, reconcile, 0, settings)

        assert requests.take(NAME) == TRIGGER_EVENT

    @pytest.mark.parametrize("retry,delay", [(0, 1.0), (1, 2.0), (2, 4.0), (3, 4.0)])
    def test_unexpected_errors_back_off_exponentially(self, requests, reconcile, settings, retry, delay):
        reconcile.side_effect = RuntimeError("boom")
        requests.request(NAME)

        with pytest.raises(kopf.TemporaryError) as exc_info:
            process_request(requests, NAME, reconcile, retry, settings)

        assert exc_info.value.delay == delay
        assert isinstance(exc_info.value.__cause__, RuntimeError)

    def test_configuration_error_backs_off(self, requests, reconcile, settings):
        reconcile.side_effect = ConfigurationError("no kernel version detected, something is wrong")
        requests.request(NAME)

        with pytest.raises(kopf.TemporaryError) as exc_info:
            process_request(requests, NAME, reconcile, 1, settings)

        assert exc_info.value.delay == 2.0
        assert requests.take(NAME) == TRIGGER_REQUEUE

    def test_failed_reconcile_is_requested_with_requeue_trigger(self, requests, reconcile, settings):
        reconcile.side_effect = [RuntimeError("boom"), None]
        requests.request(NAME)

        with pytest.raises(kopf.TemporaryError):
            process_request(requests, NAME, reconcile, 0, settings)
        process_request(requests, NAME, reconcile, 1, settings)

        assert [c.args for c in reconcile.call_args_list] == [
            (KEY, TRIGGER_EVENT),
            (KEY, TRIGGER_REQUEUE),
        ]

    def test_temporary_error_keeps_its_delay(self, requests, reconcile, settings):
        reconcile.side_effect = kopf.TemporaryError("later", delay=30)
        requests.request(NAME)

        with pytest.raises(kopf.TemporaryError) as exc_info:
            process_request(requests, NAME, reconcile, 0, settings)

        assert exc_info.value.delay == 30
        assert NAME in requests

    @pytest.mark.parametrize(
        "error",
        [kopf.PermanentError("no"), StatusUpdateAbandoned("gone")],
    )
    def test_errors_not_retried(self, requests, reconcile, settings, error):
        reconcile.side_effect = error
        requests.request(NAME)

        assert not process_request(requests, NAME, reconcile, 0, settings)
        assert NAME not in requests
