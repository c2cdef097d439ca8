"""
Pod Platform REST Client

Thin httpx wrapper around the pod collection of the cluster API
(`{AKS_PREFIX}/pods`). A 404 on lookup means "no pod", a 404 on delete
means "already gone"; every other failure is a PodPlatformError.
"""

from typing import Any, Dict, List, Optional

import httpx

from sat_ingest.core.config import Settings
from sat_ingest.core.exceptions import PodDeleteError, PodPlatformError
from sat_ingest.core.logging import get_logger
from sat_ingest.engines.pods.schemas import EnvVar

logger = get_logger(__name__)


def build_pod_manifest(
    name: str,
    project_id: str,
    settings: Settings,
    extra_env: Optional[List[EnvVar]] = None,
) -> Dict[str, Any]:
    """Pod spec for a project's training/inference unit."""
    env = [
        EnvVar(name="AZURE_STORAGE_CONNECTION_STRING", value=settings.AZURE_STORAGE_CONNECTION_STRING or ""),
        EnvVar(name="AZURE_STORAGE_CONNECTION_TIMEOUT", value=str(settings.AZURE_STORAGE_CONNECTION_TIMEOUT)),
        EnvVar(name="AZURE_DATASET_CONTAINER_NAME", value=settings.DATASET_CONTAINER_NAME),
        EnvVar(name="AZURE_PUBLIC_CONTAINER_NAME", value=settings.PUBLIC_CONTAINER_NAME),
        EnvVar(name="AZURE_ORIGINAL_CONTAINER_NAME", value=settings.ORIGINAL_CONTAINER_NAME),
        EnvVar(name="AZURE_IMPORT_MODEL_CONTAINER_NAME", value=settings.IMPORT_MODEL_CONTAINER_NAME),
        EnvVar(name="AZURE_EXPORT_MODEL_CONTAINER_NAME", value=settings.EXPORT_MODEL_CONTAINER_NAME),
        EnvVar(name="AZURE_SERVICE_BUS_CONNECTION_STRING", value=settings.SERVICE_BUS_CONNECTION_STRING),
        EnvVar(name="AZURE_WEB_PUB_SUB_SERVICE_CONNECTION_STRING", value=settings.WEB_PUB_SUB_CONNECTION_STRING),
        EnvVar(name="AZURE_WEB_PUB_SUB_SERVICE_HUB_NAME", value=settings.WEB_PUB_SUB_HUB_NAME),
        EnvVar(name="PROJECT_ID", value=project_id),
        EnvVar(name="BACKEND_URL", value=settings.BACKEND_URL),
        *(extra_env or []),
    ]

    return {
        "apiVersion": "v1",
        "kind": "Pod",
        "metadata": {"name": name},
        "spec": {
            "containers": [
                {
                    "name": name,
                    "image": settings.AKS_TRAINING_IMAGE,
                    "resources": {"requests": {"memory": settings.POD_MEMORY_REQUEST}},
                    "env": [var.model_dump() for var in env],
                }
            ],
            "nodeSelector": {"type": "gpu"},
            "restartPolicy": "Never",
            "imagePullSecrets": [{"name": settings.AKS_TRAINING_IMAGE_SECRET}],
        },
    }


class PodPlatformClient:
    """REST access to pods in one namespace."""

    def __init__(self, http_client: httpx.AsyncClient):
        self.http_client = http_client

    @classmethod
    def from_settings(cls, settings: Settings) -> Optional["PodPlatformClient"]:
        """Build a client, or None when no control-plane token is configured."""
        if not settings.AKS_TOKEN:
            return None
        return cls(httpx.AsyncClient(
            base_url=settings.AKS_PREFIX,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {settings.AKS_TOKEN}",
                "Accept": "application/json",
            },
            timeout=30.0,
        ))

    async def get_pod(self, name: str) -> Optional[Dict[str, Any]]:
        try:
            response = await self.http_client.get(f"/pods/{name}")
        except httpx.HTTPError as e:
            raise PodPlatformError(f"Get pod {name} failed: {e}") from e

        if response.status_code == 404:
            return None
        if response.is_error:
            raise PodPlatformError(
                f"Get pod {name} failed: {response.text}",
                http_status=response.status_code,
            )
        return response.json()

    async def create_pod(self, manifest: Dict[str, Any]) -> Dict[str, Any]:
        name = manifest["metadata"]["name"]
        try:
            response = await self.http_client.post("/pods", json=manifest)
        except httpx.HTTPError as e:
            raise PodPlatformError(f"Create pod {name} failed: {e}") from e

        if response.is_error:
            raise PodPlatformError(
                f"Create pod {name} failed: {response.text}",
                http_status=response.status_code,
            )
        return response.json()

    async def delete_pod(self, name: str) -> None:
        try:
            response = await self.http_client.delete(f"/pods/{name}")
        except httpx.HTTPError as e:
            raise PodDeleteError(name, str(e)) from e

        if response.status_code == 404:
            return
        if response.is_error:
            raise PodDeleteError(name, response.text, http_status=response.status_code)

    async def close(self) -> None:
        await self.http_client.aclose()
