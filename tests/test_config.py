"""Unit tests for lib/config.py."""

import dataclasses
import logging
from unittest.mock import Mock

import pytest

from lib.config import CleanupConfiguration, PodResources, RunConfiguration
from lib.exceptions import ConfigurationError, ValidationError


@pytest.mark.unit
class TestRunConfiguration:
    def test_minimal_configuration_is_valid(self):
        config = RunConfiguration(storage_class="standard")

        config.validate()
        assert config.namespace == "default"
        assert config.pvc_storage_request == "1Gi"
        assert config.cleanup_on_failure is False

    def test_is_immutable(self):
        config = RunConfiguration(storage_class="standard")

        with pytest.raises(dataclasses.FrozenInstanceError):
            config.storage_class = "other"

    @pytest.mark.parametrize("storage_class", ["", "   "])
    def test_storage_class_required(self, storage_class):
        with pytest.raises(ConfigurationError, match="storage-class is required"):
            RunConfiguration(storage_class=storage_class).validate()

    def test_pull_secret_requires_local_registry(self):
        config = RunConfiguration(storage_class="standard", image_pull_secret="regcred")

        with pytest.raises(ConfigurationError, match="local registry"):
            config.validate()

    def test_pull_secret_with_registry_is_valid(self):
        RunConfiguration(
            storage_class="standard",
            local_registry="registry.local:5000",
            image_pull_secret="regcred",
        ).validate()

    def test_invalid_snapshot_class_name(self):
        with pytest.raises(ValidationError):
            RunConfiguration(storage_class="standard", snapshot_class="Bad_Name").validate()

    def test_invalid_pvc_storage_request(self):
        with pytest.raises(ValidationError):
            RunConfiguration(storage_class="standard", pvc_storage_request="lots").validate()

    def test_request_above_limit_rejected(self):
        resources = PodResources(requests_cpu="2", limits_cpu="500m")

        with pytest.raises(ValidationError):
            RunConfiguration(storage_class="standard", resources=resources).validate()

    def test_invalid_node_selector(self):
        with pytest.raises(ValidationError):
            RunConfiguration(storage_class="standard", node_selector={"disk type": "ssd"}).validate()

    def test_image_without_registry(self):
        config = RunConfiguration(storage_class="standard")

        assert config.image("gcr.io/kubernetes-e2e-test-images/dnsutils:1.3") == (
            "gcr.io/kubernetes-e2e-test-images/dnsutils:1.3"
        )

    def test_image_from_local_registry(self):
        config = RunConfiguration(storage_class="standard", local_registry="registry.local:5000/")

        assert config.image("gcr.io/kubernetes-e2e-test-images/dnsutils:1.3") == "registry.local:5000/dnsutils:1.3"
        assert config.image("busybox") == "registry.local:5000/busybox"

    def test_log_options(self):
        logger = Mock(spec=logging.Logger)
        config = RunConfiguration(storage_class="standard", node_selector={"b": "2", "a": "1"})

        config.log_options(logger)

        logger.info.assert_any_call('%s="%s"', "STORAGE-CLASS", "standard")
        logger.info.assert_any_call('%s="%s"', "NODE SELECTOR", "a=1,b=2")


@pytest.mark.unit
class TestPodResources:
    def test_empty_manifest_when_unset(self):
        assert PodResources().to_manifest() == {}

    def test_manifest_omits_absent_values(self):
        resources = PodResources(requests_cpu="250m", limits_memory="128Mi")

        assert resources.to_manifest() == {
            "requests": {"cpu": "250m"},
            "limits": {"memory": "128Mi"},
        }

    def test_full_manifest(self):
        resources = PodResources("250m", "64Mi", "500m", "128Mi")

        resources.validate()
        assert resources.to_manifest() == {
            "requests": {"cpu": "250m", "memory": "64Mi"},
            "limits": {"cpu": "500m", "memory": "128Mi"},
        }


@pytest.mark.unit
class TestCleanupConfiguration:
    def test_valid(self):
        CleanupConfiguration(uid="ab12cd", namespace="backup-test").validate()

    def test_invalid_uid(self):
        with pytest.raises(ValidationError):
            CleanupConfiguration(uid="").validate()

    def test_invalid_namespace(self):
        with pytest.raises(ValidationError):
            CleanupConfiguration(uid="ab12cd", namespace="Bad").validate()
