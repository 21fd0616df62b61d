"""Thin wrapper around the Kubernetes API.

Only the calls needed for cluster verification and component namespace
bookkeeping are exposed. Nothing is cached: every method queries the API.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from kubernetes.config.config_exception import ConfigException
from urllib3.exceptions import HTTPError

from ..errors import LokoctlError, ReleaseOperationError

logger = logging.getLogger("lokoctl.k8s")

# Labels and annotations under this prefix are owned by lokoctl and are
# overwritten on every namespace update.
LABEL_PREFIX = "lokomotive.kinvolk.io"
NAME_LABEL = f"{LABEL_PREFIX}/name"


@dataclass
class Namespace:
    """A namespace together with the metadata lokoctl manages on it."""
    name: str
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)


def merge_managed_metadata(desired: Dict[str, str], existing: Optional[Dict[str, str]]) -> Dict[str, str]:
    """Merge lokoctl-managed keys with keys added by users.

    Existing keys under :data:`LABEL_PREFIX` are dropped so stale managed
    values disappear; all other existing keys are retained.
    """
    merged = dict(desired)
    for key, value in (existing or {}).items():
        if LABEL_PREFIX in key:
            continue
        merged[key] = value
    return merged


class KubeClient:
    """Kubernetes API client built from a kubeconfig file."""

    def __init__(self, kubeconfig_path: str):
        self.kubeconfig_path = kubeconfig_path
        try:
            api_client = config.new_client_from_config(config_file=kubeconfig_path)
        except (ConfigException, OSError) as e:
            raise LokoctlError(f"loading kubeconfig {kubeconfig_path!r}: {e}") from e

        self.core = client.CoreV1Api(api_client)
        self.apps = client.AppsV1Api(api_client)

    def ready_nodes(self) -> int:
        """Count nodes whose ``Ready`` condition is ``True``."""
        nodes = self.core.list_node().items
        ready = 0
        for node in nodes:
            conditions = (node.status and node.status.conditions) or []
            if any(c.type == "Ready" and c.status == "True" for c in conditions):
                ready += 1
        return ready

    def deployment_replicas(self, namespace: str, name: str) -> Optional[Tuple[int, int]]:
        """Return ``(desired, available)`` replicas, or None if the deployment doesn't exist."""
        try:
            deployment = self.apps.read_namespaced_deployment_status(name, namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise

        status = deployment.status
        return int(status.replicas or 0), int(status.available_replicas or 0)

    def ensure_namespace(self, namespace: Namespace) -> None:
        """Create the namespace, or update its managed labels and annotations.

        Raises:
            ReleaseOperationError: If the API rejects or fails a request.
        """
        if not namespace.name:
            raise LokoctlError("namespace name can't be empty")

        try:
            self._ensure_namespace(namespace)
        except (ApiException, HTTPError) as e:
            raise ReleaseOperationError(f"ensuring namespace {namespace.name!r}: {e}") from e

    def _ensure_namespace(self, namespace: Namespace) -> None:
        try:
            existing = self.core.read_namespace(namespace.name)
        except ApiException as e:
            if e.status != 404:
                raise
            logger.info(f"📁 Creating namespace {namespace.name}")
            body = client.V1Namespace(metadata=client.V1ObjectMeta(
                name=namespace.name,
                labels=dict(namespace.labels),
                annotations=dict(namespace.annotations),
            ))
            try:
                self.core.create_namespace(body)
            except ApiException as create_error:
                if create_error.status != 409:
                    raise
            return

        labels = merge_managed_metadata(namespace.labels, existing.metadata.labels)
        annotations = merge_managed_metadata(namespace.annotations, existing.metadata.annotations)
        body = client.V1Namespace(metadata=client.V1ObjectMeta(
            name=namespace.name,
            labels=labels,
            annotations=annotations,
            resource_version=existing.metadata.resource_version,
        ))
        logger.debug(f"Updating namespace {namespace.name} labels={labels} annotations={annotations}")
        self.core.replace_namespace(namespace.name, body)

    def delete_namespace(self, name: str) -> None:
        """Delete a namespace. A namespace which doesn't exist is not an error."""
        try:
            self.core.delete_namespace(name)
        except ApiException as e:
            if e.status == 404:
                logger.debug(f"Namespace {name} not found, nothing to delete")
                return
            raise ReleaseOperationError(f"deleting namespace {name!r}: {e}") from e
        except HTTPError as e:
            raise ReleaseOperationError(f"deleting namespace {name!r}: {e}") from e
