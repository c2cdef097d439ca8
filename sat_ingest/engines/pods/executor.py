"""
Pod Exec Channel

Runs a command inside a pod over the cluster's exec websocket. The
kubernetes client is blocking, so each exec runs in a worker thread while
the caller awaits it.
"""

import json
import asyncio
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from kubernetes import client as k8s_client
from kubernetes import config as k8s_config
from kubernetes.client.exceptions import ApiException
from kubernetes.stream import stream
from kubernetes.stream.ws_client import ERROR_CHANNEL

from sat_ingest.core.config import Settings
from sat_ingest.core.exceptions import PodPlatformError
from sat_ingest.core.logging import get_logger
from sat_ingest.engines.pods.schemas import StatusCallback

logger = get_logger(__name__)


class IPodExecutor(ABC):

    @abstractmethod
    async def exec(
        self,
        namespace: str,
        pod_name: str,
        command: List[str],
        on_status: Optional[StatusCallback] = None,
    ) -> Dict[str, Any]:
        """
        Run command in the pod's first container and wait for it to exit.

        Returns:
            The final status document reported by the platform
        """
        pass


def build_kube_config(settings: Settings) -> Dict[str, Any]:
    """Kubeconfig document for the configured cluster and user."""
    cluster: Dict[str, Any] = {"server": settings.AKS_CLUSTER_SERVER}
    if settings.AKS_CLUSTER_CA_DATA:
        cluster["certificate-authority-data"] = settings.AKS_CLUSTER_CA_DATA

    user: Dict[str, Any] = {}
    if settings.AKS_TOKEN:
        user["token"] = settings.AKS_TOKEN
    if settings.AKS_CERT_DATA:
        user["client-certificate-data"] = settings.AKS_CERT_DATA
    if settings.AKS_KEY_DATA:
        user["client-key-data"] = settings.AKS_KEY_DATA

    return {
        "apiVersion": "v1",
        "kind": "Config",
        "clusters": [{"name": settings.AKS_CLUSTER_NAME, "cluster": cluster}],
        "users": [{"name": settings.AKS_USER_NAME, "user": user}],
        "contexts": [{
            "name": settings.AKS_CLUSTER_NAME,
            "context": {"cluster": settings.AKS_CLUSTER_NAME, "user": settings.AKS_USER_NAME},
        }],
        "current-context": settings.AKS_CLUSTER_NAME,
    }


class KubernetesPodExecutor(IPodExecutor):
    """Exec through the official kubernetes client, configured once at startup."""

    def __init__(self, api_client: k8s_client.ApiClient, tty: bool = False):
        self.core_api = k8s_client.CoreV1Api(api_client)
        self.tty = tty

    @classmethod
    def from_settings(cls, settings: Settings) -> Optional["KubernetesPodExecutor"]:
        if not settings.AKS_CLUSTER_SERVER:
            return None
        configuration = k8s_client.Configuration()
        k8s_config.load_kube_config_from_dict(
            build_kube_config(settings),
            client_configuration=configuration,
        )
        return cls(k8s_client.ApiClient(configuration))

    async def exec(
        self,
        namespace: str,
        pod_name: str,
        command: List[str],
        on_status: Optional[StatusCallback] = None,
    ) -> Dict[str, Any]:
        status = await asyncio.to_thread(self._exec_blocking, namespace, pod_name, command)
        if on_status:
            on_status(status)
        return status

    def _exec_blocking(self, namespace: str, pod_name: str, command: List[str]) -> Dict[str, Any]:
        try:
            response = stream(
                self.core_api.connect_get_namespaced_pod_exec,
                pod_name,
                namespace,
                command=command,
                stderr=True,
                stdin=False,
                stdout=True,
                tty=self.tty,
                _preload_content=False,
            )
        except ApiException as e:
            raise PodPlatformError(f"Exec in pod {pod_name} failed: {e.reason}", http_status=e.status) from e

        try:
            while response.is_open():
                response.update(timeout=1)
                if response.peek_stdout():
                    logger.info("pod_stdout", pod_name=pod_name, output=response.read_stdout())
                if response.peek_stderr():
                    logger.warning("pod_stderr", pod_name=pod_name, output=response.read_stderr())
            error = response.read_channel(ERROR_CHANNEL)
        finally:
            response.close()

        return json.loads(error) if error else {"status": "Unknown"}
