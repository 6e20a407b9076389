"""Unit tests for lib/cleanup.py."""

from unittest.mock import MagicMock

import pytest
from kubernetes.client.rest import ApiException

from lib.cleanup import cleanup_by_uid
from lib.exceptions import CleanupError, FatalError, ValidationError


def _obj(name):
    return {"metadata": {"name": name}}


@pytest.fixture
def kube():
    kube = MagicMock()
    kube.get_preferred_version.return_value = "v1"
    kube.list_pods.return_value = [
        _obj("source-pod-ab12cd"),
        _obj("restored-pod-ab12cd"),
        _obj("source-pod-zz99yy"),
    ]
    kube.list_dynamic.return_value = [_obj("snapshot-source-pvc-ab12cd"), _obj("snapshot-source-pvc-zz99yy")]
    kube.list_pvcs.return_value = [_obj("source-pvc-ab12cd"), _obj("restored-pvc-zz99yy")]
    kube.delete_pod.return_value = True
    kube.delete_dynamic.return_value = True
    kube.delete_pvc.return_value = True
    return kube


@pytest.mark.unit
class TestCleanupByUid:
    def test_deletes_only_resources_of_the_run(self, kube):
        report = cleanup_by_uid(kube, "backup-test", "ab12cd")

        deleted_pods = [c.args[1] for c in kube.delete_pod.call_args_list]
        deleted_snapshots = [c.args[1] for c in kube.delete_dynamic.call_args_list]
        deleted_pvcs = [c.args[1] for c in kube.delete_pvc.call_args_list]
        assert deleted_pods == ["source-pod-ab12cd", "restored-pod-ab12cd"]
        assert deleted_snapshots == ["snapshot-source-pvc-ab12cd"]
        assert deleted_pvcs == ["source-pvc-ab12cd"]
        assert len(report.deleted) == 4
        assert report.failed == []

    def test_lists_by_managed_by_label(self, kube):
        cleanup_by_uid(kube, "backup-test", "ab12cd")

        selector = "app.kubernetes.io/managed-by=k8s-preflight"
        kube.list_pods.assert_called_once_with("backup-test", label_selector=selector)
        kube.list_pvcs.assert_called_once_with("backup-test", label_selector=selector)
        assert kube.list_dynamic.call_args.kwargs["label_selector"] == selector

    def test_pods_deleted_before_pvcs(self, kube):
        order = []
        kube.delete_pod.side_effect = lambda ns, name: order.append(("pod", name)) or True
        kube.delete_dynamic.side_effect = lambda res, name, ns: order.append(("snapshot", name)) or True
        kube.delete_pvc.side_effect = lambda ns, name: order.append(("pvc", name)) or True

        cleanup_by_uid(kube, "backup-test", "ab12cd")

        kinds = [kind for kind, _ in order]
        assert kinds == ["pod", "pod", "snapshot", "pvc"]

    def test_already_absent_counts_as_deleted(self, kube):
        kube.delete_pod.return_value = False

        report = cleanup_by_uid(kube, "backup-test", "ab12cd")

        assert report.failed == []
        assert "Pod/source-pod-ab12cd" in report.deleted

    def test_nothing_to_delete(self, kube):
        kube.list_pods.return_value = []
        kube.list_dynamic.return_value = []
        kube.list_pvcs.return_value = []

        report = cleanup_by_uid(kube, "backup-test", "ab12cd")

        assert report.deleted == []

    def test_continues_after_failure_and_aggregates(self, kube):
        kube.delete_pod.side_effect = [ApiException(status=403, reason="Forbidden"), True]

        with pytest.raises(CleanupError) as exc_info:
            cleanup_by_uid(kube, "backup-test", "ab12cd")

        assert len(exc_info.value.failures) == 1
        assert "source-pod-ab12cd" in exc_info.value.failures[0]
        assert kube.delete_pod.call_count == 2
        kube.delete_pvc.assert_called_once_with("backup-test", "source-pvc-ab12cd")

    def test_snapshot_api_not_served_is_not_a_failure(self, kube):
        kube.get_preferred_version.side_effect = FatalError("API group snapshot.storage.k8s.io is not served")

        report = cleanup_by_uid(kube, "backup-test", "ab12cd")

        assert report.failed == []
        kube.delete_dynamic.assert_not_called()
        kube.delete_pvc.assert_called_once()

    def test_snapshot_discovery_error_still_cleans_pvcs(self, kube):
        kube.get_preferred_version.side_effect = ApiException(status=503)

        with pytest.raises(CleanupError, match="snapshot.storage.k8s.io"):
            cleanup_by_uid(kube, "backup-test", "ab12cd")

        kube.delete_dynamic.assert_not_called()
        kube.delete_pvc.assert_called_once()

    def test_list_failure_recorded(self, kube):
        kube.list_pvcs.side_effect = ApiException(status=500)

        with pytest.raises(CleanupError, match="list PersistentVolumeClaim"):
            cleanup_by_uid(kube, "backup-test", "ab12cd")

    def test_empty_uid_rejected(self, kube):
        with pytest.raises(ValidationError):
            cleanup_by_uid(kube, "backup-test", "")

        kube.list_pods.assert_not_called()
