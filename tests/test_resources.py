"""Unit tests for lib/resources.py."""

from unittest.mock import MagicMock

import pytest

from lib.config import PodResources, RunConfiguration
from lib.exceptions import FatalError
from lib.resources import (
    ResourceHandle,
    ResourceKind,
    ResourceManager,
    managed_by_selector,
    volume_snapshot_class_resource,
    volume_snapshot_resource,
)
from lib.waiter import PollSpec, WaitStatus

FAST_POLL = PollSpec(initial_delay=0, max_delay=0, max_attempts=3, max_duration=None)


@pytest.fixture
def kube():
    kube = MagicMock()
    kube.get_preferred_version.return_value = "v1"
    return kube


@pytest.fixture
def config():
    return RunConfiguration(storage_class="standard", namespace="backup-test")


@pytest.fixture
def manager(kube, config):
    return ResourceManager(kube, config, "ab12cd", poll_spec=FAST_POLL)


def _ready_pod():
    return {"status": {"phase": "Running", "conditions": [{"type": "Ready", "status": "True"}]}}


@pytest.mark.unit
class TestManifests:
    def test_labels(self, manager):
        assert manager.labels() == {"app.kubernetes.io/managed-by": "k8s-preflight", "preflight-run": "ab12cd"}
        assert managed_by_selector() == "app.kubernetes.io/managed-by=k8s-preflight"

    def test_pvc_spec(self, manager):
        spec = manager.pvc_spec("source-pvc-ab12cd")

        assert spec["metadata"]["name"] == "source-pvc-ab12cd"
        assert spec["metadata"]["namespace"] == "backup-test"
        assert spec["spec"]["accessModes"] == ["ReadWriteOnce"]
        assert spec["spec"]["storageClassName"] == "standard"
        assert spec["spec"]["resources"] == {"requests": {"storage": "1Gi"}}
        assert "dataSource" not in spec["spec"]

    def test_restore_pvc_spec_uses_snapshot_data_source(self, manager):
        spec = manager.pvc_spec("restored-pvc-ab12cd", snapshot_name="snapshot-source-pvc-ab12cd")

        assert spec["spec"]["dataSource"] == {
            "apiGroup": "snapshot.storage.k8s.io",
            "kind": "VolumeSnapshot",
            "name": "snapshot-source-pvc-ab12cd",
        }

    def test_pod_spec_minimal(self, manager):
        spec = manager.pod_spec("test-dns-pod-ab12cd", "dnsutils", "dnsutils:1.3", ["sleep", "3600"])
        pod = spec["spec"]

        assert pod["restartPolicy"] == "Never"
        assert pod["containers"][0]["image"] == "dnsutils:1.3"
        for key in ("volumes", "imagePullSecrets", "serviceAccountName", "nodeSelector"):
            assert key not in pod
        assert "resources" not in pod["containers"][0]

    def test_pod_spec_honours_configuration(self, kube):
        config = RunConfiguration(
            storage_class="standard",
            local_registry="registry.local:5000",
            image_pull_secret="regcred",
            service_account="preflight-sa",
            resources=PodResources(requests_cpu="250m", limits_memory="128Mi"),
            node_selector={"disktype": "ssd"},
        )
        manager = ResourceManager(kube, config, "ab12cd")

        spec = manager.pod_spec("source-pod-ab12cd", "busybox", "busybox", ["sh"], pvc_name="source-pvc-ab12cd")
        pod = spec["spec"]
        container = pod["containers"][0]

        assert container["image"] == "registry.local:5000/busybox"
        assert container["resources"] == {"requests": {"cpu": "250m"}, "limits": {"memory": "128Mi"}}
        assert container["volumeMounts"] == [{"name": "source-data", "mountPath": "/demo/data"}]
        assert pod["volumes"][0]["persistentVolumeClaim"] == {"claimName": "source-pvc-ab12cd"}
        assert pod["imagePullSecrets"] == [{"name": "regcred"}]
        assert pod["serviceAccountName"] == "preflight-sa"
        assert pod["nodeSelector"] == {"disktype": "ssd"}

    def test_snapshot_spec_uses_preferred_version(self, manager, kube):
        kube.get_preferred_version.return_value = "v1beta1"

        spec = manager.snapshot_spec("snapshot-source-pvc-ab12cd", "csi-snapclass", "source-pvc-ab12cd")

        assert spec["apiVersion"] == "snapshot.storage.k8s.io/v1beta1"
        assert spec["spec"] == {
            "volumeSnapshotClassName": "csi-snapclass",
            "source": {"persistentVolumeClaimName": "source-pvc-ab12cd"},
        }

    def test_snapshot_version_discovered_once(self, manager, kube):
        assert manager.snapshot_version == "v1"
        assert manager.snapshot_version == "v1"
        kube.get_preferred_version.assert_called_once_with("snapshot.storage.k8s.io")

    def test_dynamic_resources(self):
        assert volume_snapshot_resource("v1").namespaced is True
        assert volume_snapshot_class_resource("v1").namespaced is False


@pytest.mark.unit
class TestCreate:
    def test_create_pvc_returns_handle(self, manager, kube):
        handle = manager.create_pvc("source-pvc-ab12cd")

        assert handle == ResourceHandle(ResourceKind.PVC, "source-pvc-ab12cd", "backup-test")
        kube.create_pvc.assert_called_once()

    def test_create_pod_returns_handle(self, manager, kube):
        handle = manager.create_pod("source-pod-ab12cd", "busybox", "busybox", ["sh"])

        assert handle.kind is ResourceKind.POD
        assert str(handle) == "Pod backup-test/source-pod-ab12cd"

    def test_create_volume_snapshot(self, manager, kube):
        handle = manager.create_volume_snapshot("snap-ab12cd", "csi-snapclass", "source-pvc-ab12cd")

        assert handle.kind is ResourceKind.VOLUME_SNAPSHOT
        resource, body = kube.create_dynamic.call_args.args
        assert resource.plural == "volumesnapshots"
        assert body["metadata"]["name"] == "snap-ab12cd"
        assert kube.create_dynamic.call_args.kwargs["namespace"] == "backup-test"


@pytest.mark.unit
class TestWaits:
    def test_pod_ready(self, manager, kube):
        kube.get_pod.side_effect = [{"status": {"phase": "Pending"}}, _ready_pod()]

        outcome = manager.wait_pod_ready(ResourceHandle(ResourceKind.POD, "p", "backup-test"))

        assert outcome.succeeded
        assert outcome.attempts == 2

    def test_pod_deleted_out_of_band_is_permanent(self, manager, kube):
        kube.get_pod.return_value = None

        outcome = manager.wait_pod_ready(ResourceHandle(ResourceKind.POD, "p", "backup-test"))

        assert outcome.status is WaitStatus.ERRORED
        assert isinstance(outcome.error, FatalError)
        assert kube.get_pod.call_count == 1

    def test_pod_failed_phase_is_permanent(self, manager, kube):
        kube.get_pod.return_value = {"status": {"phase": "Failed"}}

        outcome = manager.wait_pod_ready(ResourceHandle(ResourceKind.POD, "p", "backup-test"))

        assert outcome.status is WaitStatus.ERRORED

    def test_pod_never_ready_times_out(self, manager, kube):
        kube.get_pod.return_value = {"status": {"phase": "Pending"}}

        outcome = manager.wait_pod_ready(ResourceHandle(ResourceKind.POD, "p", "backup-test"))

        assert outcome.status is WaitStatus.TIMED_OUT
        assert outcome.attempts == 3

    def test_snapshot_ready(self, manager, kube):
        kube.get_dynamic.side_effect = [{"status": {"readyToUse": False}}, {"status": {"readyToUse": True}}]

        outcome = manager.wait_snapshot_ready(ResourceHandle(ResourceKind.VOLUME_SNAPSHOT, "s", "backup-test"))

        assert outcome.succeeded

    def test_snapshot_stuck_times_out(self, manager, kube):
        kube.get_dynamic.return_value = {"status": {"readyToUse": False, "error": {"message": "driver error"}}}

        outcome = manager.wait_snapshot_ready(ResourceHandle(ResourceKind.VOLUME_SNAPSHOT, "s", "backup-test"))

        assert outcome.status is WaitStatus.TIMED_OUT
        assert "driver error" in str(outcome.error)

    def test_wait_pod_deleted(self, manager, kube):
        kube.get_pod.side_effect = [{"status": {"phase": "Running"}}, None]

        outcome = manager.wait_pod_deleted(ResourceHandle(ResourceKind.POD, "p", "backup-test"))

        assert outcome.succeeded


@pytest.mark.unit
class TestDelete:
    @pytest.mark.parametrize(
        "kind,method",
        [
            (ResourceKind.POD, "delete_pod"),
            (ResourceKind.PVC, "delete_pvc"),
            (ResourceKind.VOLUME_SNAPSHOT, "delete_dynamic"),
        ],
    )
    def test_delete_dispatches_by_kind(self, manager, kube, kind, method):
        manager.delete(ResourceHandle(kind, "obj-ab12cd", "backup-test"))

        getattr(kube, method).assert_called_once()

    def test_delete_absent_is_not_an_error(self, manager, kube):
        kube.delete_pod.return_value = False

        manager.delete(ResourceHandle(ResourceKind.POD, "gone-ab12cd", "backup-test"))
