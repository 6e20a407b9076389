"""
Kubernetes client wrapper used by the preflight checks.

A ``KubeClient`` is the single cluster handle passed to every component that
talks to the API server; nothing in this package keeps module-level clients.
Inputs (resource names, namespaces) are validated before any API call.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
from urllib3.exceptions import HTTPError

from lib.constants import DEFAULT_REQUEST_TIMEOUT, LOGGER_NAME
from lib.exceptions import FatalError
from lib.validation import InputValidator

logger = logging.getLogger(LOGGER_NAME)


def is_retryable_error(exception: BaseException) -> bool:
    """Check if exception is retryable."""
    if isinstance(exception, ApiException):
        # Retry on server errors (5xx) and too many requests (429)
        return exception.status is not None and (500 <= exception.status < 600 or exception.status == 429)
    if isinstance(exception, HTTPError):
        return True
    return False


def _should_retry(exception: BaseException) -> bool:
    """Custom retry condition using is_retryable_error."""
    if not isinstance(exception, Exception):
        return False
    return is_retryable_error(exception)


# Standard retry decorator for API calls
retry_api_call = retry(
    retry=retry_if_exception(_should_retry),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    stop=stop_after_attempt(5),
    before_sleep=before_sleep_log(logger, logging.DEBUG),
    reraise=True,
)


@dataclass(frozen=True)
class DynamicResource:
    """Group/version/kind address of a resource whose schema is installed on the cluster.

    VolumeSnapshot and VolumeSnapshotClass are served at whatever version the
    cluster's snapshot CRDs provide, so they are handled as plain dicts rather
    than generated models.
    """

    group: str
    version: str
    kind: str
    plural: str
    namespaced: bool = True

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}"


def get_field(obj: Optional[Dict[str, Any]], path: str, default: Any = None) -> Any:
    """Read a dotted field path (``"status.readyToUse"``) from a loosely-typed object."""
    current: Any = obj
    for key in path.split("."):
        if not isinstance(current, dict) or key not in current:
            return default
        current = current[key]
    return current if current is not None else default


class KubeClient:
    """Wrapper for Kubernetes API clients with preflight-specific helpers."""

    def __init__(
        self,
        kubeconfig: Optional[str] = None,
        context: Optional[str] = None,
        request_timeout: int = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        """
        Initialize Kubernetes clients for the given kubeconfig and context.

        Args:
            kubeconfig: Path to kubeconfig file (defaults to $KUBECONFIG or ~/.kube/config)
            context: Kubernetes context name
            request_timeout: API request timeout in seconds
        """
        self.kubeconfig = kubeconfig
        self.context = context
        self.request_timeout = request_timeout

        # Per-instance configuration so several clients can coexist in one process
        configuration = client.Configuration()
        config.load_kube_config(config_file=kubeconfig, context=context, client_configuration=configuration)
        configuration.retries = 3

        self.api_client = client.ApiClient(configuration)
        self.core_v1 = client.CoreV1Api(self.api_client)
        self.storage_v1 = client.StorageV1Api(self.api_client)
        self.custom_api = client.CustomObjectsApi(self.api_client)
        self.apis_api = client.ApisApi(self.api_client)
        self.version_api = client.VersionApi(self.api_client)
        self.apiregistration_v1 = client.ApiregistrationV1Api(self.api_client)

        logger.info(
            "Initialized Kubernetes client for context: %s (timeout: %ss)",
            context or "current",
            request_timeout,
        )

    # =============================
    # Discovery
    # =============================
    @retry_api_call
    def get_server_version(self) -> str:
        """Return the API server's git version, e.g. ``v1.27.3``."""
        info = self.version_api.get_code(_request_timeout=self.request_timeout)
        return info.git_version

    @retry_api_call
    def get_api_groups(self) -> List[Dict]:
        """List API groups served under /apis."""
        group_list = self.apis_api.get_api_versions(_request_timeout=self.request_timeout)
        return [group.to_dict() for group in group_list.groups or []]

    def get_preferred_version(self, group: str) -> str:
        """Return the version the server prefers for an API group.

        Raises:
            FatalError: If the group is not served by the cluster
        """
        for api_group in self.get_api_groups():
            if api_group.get("name") == group:
                preferred = api_group.get("preferred_version") or {}
                version = preferred.get("version")
                if version:
                    return version
        raise FatalError(f"API group {group} is not served by the cluster")

    def has_api_group_version(self, group: str, version: str) -> bool:
        """Check if ``group/version`` is advertised by discovery."""
        wanted = f"{group}/{version}"
        for api_group in self.get_api_groups():
            for served in api_group.get("versions") or []:
                if served.get("group_version") == wanted:
                    return True
        return False

    @retry_api_call
    def list_unavailable_api_services(self) -> List[str]:
        """Names of aggregated API services whose Available condition is not True.

        Such services make group discovery partial.
        """
        result = self.apiregistration_v1.list_api_service(_request_timeout=self.request_timeout)
        unavailable = []
        for svc in result.items:
            conditions = (svc.status.conditions if svc.status else None) or []
            for condition in conditions:
                if condition.type == "Available" and condition.status != "True":
                    unavailable.append(svc.metadata.name)
                    break
        return unavailable

    # =============================
    # Core and storage objects
    # =============================
    @retry_api_call
    def get_namespace(self, name: str) -> Optional[Dict]:
        """Get a namespace as dict or None if not found.

        Raises:
            ValidationError: If namespace name is invalid
        """
        try:
            InputValidator.validate_kubernetes_namespace(name)

            ns = self.core_v1.read_namespace(name, _request_timeout=self.request_timeout)
            return ns.to_dict()
        except ApiException as e:
            if e.status == 404:
                return None
            # Re-raise retryable errors for tenacity to catch
            if is_retryable_error(e):
                raise
            logger.error("Failed to get namespace %s: %s", name, e)
            raise

    @retry_api_call
    def get_storage_class(self, name: str) -> Optional[Dict]:
        """Get a StorageClass as dict or None if not found.

        Raises:
            ValidationError: If storage class name is invalid
        """
        try:
            InputValidator.validate_kubernetes_name(name, "StorageClass")

            sc = self.storage_v1.read_storage_class(name, _request_timeout=self.request_timeout)
            return sc.to_dict()
        except ApiException as e:
            if e.status == 404:
                return None
            if is_retryable_error(e):
                raise
            logger.error("Failed to get storage class %s: %s", name, e)
            raise

    @retry_api_call
    def get_pod(self, namespace: str, name: str) -> Optional[Dict]:
        """Get a pod as dict or None if not found."""
        try:
            InputValidator.validate_kubernetes_namespace(namespace)
            InputValidator.validate_kubernetes_name(name, "pod")

            pod = self.core_v1.read_namespaced_pod(name=name, namespace=namespace, _request_timeout=self.request_timeout)
            return pod.to_dict()
        except ApiException as e:
            if e.status == 404:
                return None
            if is_retryable_error(e):
                raise
            raise

    @retry_api_call
    def list_pods(self, namespace: str, label_selector: Optional[str] = None) -> List[Dict]:
        """List pods in a namespace."""
        InputValidator.validate_kubernetes_namespace(namespace)
        result = self.core_v1.list_namespaced_pod(
            namespace=namespace,
            label_selector=label_selector,
            _request_timeout=self.request_timeout,
        )
        return [pod.to_dict() for pod in result.items]

    @retry_api_call
    def create_pod(self, namespace: str, body: Dict[str, Any]) -> Dict:
        """Create a pod from a manifest dict."""
        InputValidator.validate_kubernetes_namespace(namespace)
        InputValidator.validate_kubernetes_name(body.get("metadata", {}).get("name", ""), "pod")
        try:
            result = self.core_v1.create_namespaced_pod(
                namespace=namespace, body=body, _request_timeout=self.request_timeout
            )
            return result.to_dict()
        except ApiException as e:
            if is_retryable_error(e):
                raise
            logger.error("Failed to create pod %s/%s: %s", namespace, body["metadata"]["name"], e.reason)
            raise

    @retry_api_call
    def delete_pod(self, namespace: str, name: str) -> bool:
        """Delete a pod; return False if it was already absent."""
        InputValidator.validate_kubernetes_namespace(namespace)
        InputValidator.validate_kubernetes_name(name, "pod")
        try:
            self.core_v1.delete_namespaced_pod(name=name, namespace=namespace, _request_timeout=self.request_timeout)
            return True
        except ApiException as e:
            if e.status == 404:
                return False
            if is_retryable_error(e):
                raise
            logger.error("Failed to delete pod %s/%s: %s", namespace, name, e.reason)
            raise

    @retry_api_call
    def list_pvcs(self, namespace: str, label_selector: Optional[str] = None) -> List[Dict]:
        """List PersistentVolumeClaims in a namespace."""
        InputValidator.validate_kubernetes_namespace(namespace)
        result = self.core_v1.list_namespaced_persistent_volume_claim(
            namespace=namespace,
            label_selector=label_selector,
            _request_timeout=self.request_timeout,
        )
        return [pvc.to_dict() for pvc in result.items]

    @retry_api_call
    def create_pvc(self, namespace: str, body: Dict[str, Any]) -> Dict:
        """Create a PersistentVolumeClaim from a manifest dict."""
        InputValidator.validate_kubernetes_namespace(namespace)
        InputValidator.validate_kubernetes_name(body.get("metadata", {}).get("name", ""), "PersistentVolumeClaim")
        try:
            result = self.core_v1.create_namespaced_persistent_volume_claim(
                namespace=namespace, body=body, _request_timeout=self.request_timeout
            )
            return result.to_dict()
        except ApiException as e:
            if is_retryable_error(e):
                raise
            logger.error("Failed to create pvc %s/%s: %s", namespace, body["metadata"]["name"], e.reason)
            raise

    @retry_api_call
    def delete_pvc(self, namespace: str, name: str) -> bool:
        """Delete a PersistentVolumeClaim; return False if it was already absent."""
        InputValidator.validate_kubernetes_namespace(namespace)
        InputValidator.validate_kubernetes_name(name, "PersistentVolumeClaim")
        try:
            self.core_v1.delete_namespaced_persistent_volume_claim(
                name=name, namespace=namespace, _request_timeout=self.request_timeout
            )
            return True
        except ApiException as e:
            if e.status == 404:
                return False
            if is_retryable_error(e):
                raise
            logger.error("Failed to delete pvc %s/%s: %s", namespace, name, e.reason)
            raise

    # =============================
    # Custom resources
    # =============================
    @retry_api_call
    def get_custom_resource(
        self,
        group: str,
        version: str,
        plural: str,
        name: str,
        namespace: Optional[str] = None,
    ) -> Optional[Dict]:
        """
        Get a custom resource.

        Args:
            group: API group (e.g., 'snapshot.storage.k8s.io')
            version: API version (e.g., 'v1')
            plural: Resource plural (e.g., 'volumesnapshots')
            name: Resource name
            namespace: Namespace (None for cluster-scoped)

        Returns:
            Resource dict or None if not found

        Raises:
            ValidationError: If resource name or namespace is invalid
        """
        try:
            InputValidator.validate_kubernetes_name(name, "custom resource")
            if namespace:
                InputValidator.validate_kubernetes_namespace(namespace)

            if namespace:
                resource = self.custom_api.get_namespaced_custom_object(
                    group=group,
                    version=version,
                    namespace=namespace,
                    plural=plural,
                    name=name,
                )
            else:
                resource = self.custom_api.get_cluster_custom_object(
                    group=group, version=version, plural=plural, name=name
                )
            return resource
        except ApiException as e:
            if e.status == 404:
                return None
            if is_retryable_error(e):
                raise
            raise

    @retry_api_call
    def list_custom_resources(
        self,
        group: str,
        version: str,
        plural: str,
        namespace: Optional[str] = None,
        label_selector: Optional[str] = None,
    ) -> List[Dict]:
        """
        List custom resources.

        Args:
            group: API group
            version: API version
            plural: Resource plural
            namespace: Namespace (None for cluster-scoped)
            label_selector: Label selector filter

        Returns:
            List of resource dicts (empty if the resource type is not served)
        """
        items: List[Dict] = []
        continue_token: Optional[str] = None

        while True:
            try:
                if namespace:
                    result = self.custom_api.list_namespaced_custom_object(
                        group=group,
                        version=version,
                        namespace=namespace,
                        plural=plural,
                        label_selector=label_selector,
                        _continue=continue_token,
                    )
                else:
                    result = self.custom_api.list_cluster_custom_object(
                        group=group,
                        version=version,
                        plural=plural,
                        label_selector=label_selector,
                        _continue=continue_token,
                    )
            except ApiException as e:
                if e.status == 404:
                    return []
                raise

            items.extend(result.get("items", []))

            metadata = result.get("metadata") or {}
            continue_token = metadata.get("continue")

            if not continue_token:
                break

        return items

    @retry_api_call
    def create_custom_resource(
        self,
        group: str,
        version: str,
        plural: str,
        body: Dict[str, Any],
        namespace: Optional[str] = None,
    ) -> Dict:
        """Create a custom resource.

        Raises:
            ValidationError: If resource name or namespace is invalid
        """
        resource_name = body.get("metadata", {}).get("name")
        if resource_name:
            InputValidator.validate_kubernetes_name(resource_name, "custom resource")
        if namespace:
            InputValidator.validate_kubernetes_namespace(namespace)

        try:
            if namespace:
                result = self.custom_api.create_namespaced_custom_object(
                    group=group,
                    version=version,
                    namespace=namespace,
                    plural=plural,
                    body=body,
                )
            else:
                result = self.custom_api.create_cluster_custom_object(
                    group=group, version=version, plural=plural, body=body
                )
            return result
        except ApiException as e:
            if is_retryable_error(e):
                raise
            logger.error("Failed to create %s: %s", plural, e.reason)
            raise

    @retry_api_call
    def delete_custom_resource(
        self,
        group: str,
        version: str,
        plural: str,
        name: str,
        namespace: Optional[str] = None,
    ) -> bool:
        """Delete a custom resource.

        Returns:
            True if deleted, False if it was already absent

        Raises:
            ValidationError: If resource name or namespace is invalid
        """
        InputValidator.validate_kubernetes_name(name, "custom resource")
        if namespace:
            InputValidator.validate_kubernetes_namespace(namespace)

        try:
            if namespace:
                self.custom_api.delete_namespaced_custom_object(
                    group=group,
                    version=version,
                    namespace=namespace,
                    plural=plural,
                    name=name,
                )
            else:
                self.custom_api.delete_cluster_custom_object(group=group, version=version, plural=plural, name=name)
            return True
        except ApiException as e:
            if e.status == 404:
                return False
            if is_retryable_error(e):
                raise
            logger.error("Failed to delete %s/%s: %s", plural, name, e.reason)
            raise

    # =============================
    # Dynamic resource helpers
    # =============================
    def get_dynamic(self, resource: DynamicResource, name: str, namespace: Optional[str] = None) -> Optional[Dict]:
        return self.get_custom_resource(
            resource.group,
            resource.version,
            resource.plural,
            name,
            namespace=namespace if resource.namespaced else None,
        )

    def list_dynamic(
        self,
        resource: DynamicResource,
        namespace: Optional[str] = None,
        label_selector: Optional[str] = None,
    ) -> List[Dict]:
        return self.list_custom_resources(
            resource.group,
            resource.version,
            resource.plural,
            namespace=namespace if resource.namespaced else None,
            label_selector=label_selector,
        )

    def create_dynamic(self, resource: DynamicResource, body: Dict[str, Any], namespace: Optional[str] = None) -> Dict:
        body.setdefault("apiVersion", resource.api_version)
        body.setdefault("kind", resource.kind)
        return self.create_custom_resource(
            resource.group,
            resource.version,
            resource.plural,
            body,
            namespace=namespace if resource.namespaced else None,
        )

    def delete_dynamic(self, resource: DynamicResource, name: str, namespace: Optional[str] = None) -> bool:
        return self.delete_custom_resource(
            resource.group,
            resource.version,
            resource.plural,
            name,
            namespace=namespace if resource.namespaced else None,
        )
