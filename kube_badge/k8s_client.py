"""
Kubernetes client wrapper for read-only health queries.

Resolves credentials once at startup (local kubeconfig in debug mode,
the in-cluster service account otherwise) and lists pods and nodes
across all namespaces on demand.
"""

import asyncio
import os
from typing import List
from urllib.parse import urlparse

import structlog
import urllib3
import yaml
from kubernetes import client, config
from kubernetes.client.rest import ApiException

from .config import Settings

logger = structlog.get_logger(__name__)

DEFAULT_KUBECONFIG_PATH = os.path.join(os.path.expanduser("~"), ".kube", "config")


class CredentialError(Exception):
    """Cluster credentials are missing, unreadable or malformed."""


class ClusterConnectionError(Exception):
    """A usable API client could not be built from the credentials."""


class ClusterQueryError(Exception):
    """A list call against the API server failed."""


class K8sClient:
    """
    Read-only view of the cluster.

    Shared by all requests; holds no per-request state. The underlying
    client is blocking, so calls run in a worker thread.
    """

    def __init__(self, core_v1: client.CoreV1Api):
        self.core_v1 = core_v1

    async def list_pods(self) -> List[client.V1Pod]:
        """List pods in every namespace."""
        return await self._list("pods", self.core_v1.list_pod_for_all_namespaces)

    async def list_nodes(self) -> List[client.V1Node]:
        """List all nodes."""
        return await self._list("nodes", self.core_v1.list_node)

    async def _list(self, resource: str, call) -> list:
        try:
            result = await asyncio.to_thread(call)
        except ApiException as e:
            logger.error("Failed to list resources", resource=resource, error=str(e))
            raise ClusterQueryError(str(e)) from e
        except urllib3.exceptions.HTTPError as e:
            logger.error("Cluster unreachable", resource=resource, error=str(e))
            raise ClusterQueryError(str(e)) from e
        except Exception as e:
            # e.g. ConfigException from an exec/token refresh in kubeconfig mode
            logger.error("Cluster query failed", resource=resource, error=str(e))
            raise ClusterQueryError(str(e)) from e
        return result.items


def _load_credentials(settings: Settings) -> client.Configuration:
    configuration = client.Configuration()
    try:
        if settings.debug:
            path = settings.kubeconfig_path or DEFAULT_KUBECONFIG_PATH
            logger.debug("Loading kubeconfig", path=path)
            config.load_kube_config(
                config_file=path, client_configuration=configuration
            )
        else:
            logger.debug("Loading in-cluster config")
            config.load_incluster_config(client_configuration=configuration)
    except (config.ConfigException, OSError, yaml.YAMLError) as e:
        raise CredentialError(str(e)) from e
    return configuration


def new_client(settings: Settings) -> K8sClient:
    """Build the cluster handle. No request is sent to the API server here."""
    configuration = _load_credentials(settings)

    parsed = urlparse(configuration.host or "")
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ClusterConnectionError(
            f"invalid API server URL: {configuration.host!r}"
        )

    try:
        api_client = client.ApiClient(configuration)
    except (ValueError, OSError) as e:
        raise ClusterConnectionError(str(e)) from e

    logger.info("Kubernetes client ready", host=configuration.host)
    return K8sClient(client.CoreV1Api(api_client))
