"""
Storage Abstraction Layer - The Bridge Pattern

Provides a clean interface for object storage with LocalStorage (development)
and AzureBlobStorage (production). Objects live in named containers and are
addressed by a slash-separated path.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from azure.core.exceptions import AzureError, ResourceExistsError, ResourceNotFoundError
from azure.storage.blob import ContentSettings
from azure.storage.blob.aio import BlobServiceClient

from sat_ingest.core.config import settings
from sat_ingest.core.exceptions import ObjectNotFoundError, StorageError
from sat_ingest.core.logging import get_logger

logger = get_logger(__name__)


class IStorage(ABC):
    """Interface for object storage operations - The Bridge"""

    @abstractmethod
    async def container_exists(self, container: str) -> bool:
        """Check if a container exists."""
        pass

    @abstractmethod
    async def create_container(self, container: str) -> None:
        """Create a container; creating an existing one is not an error."""
        pass

    @abstractmethod
    async def upload(
        self,
        container: str,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream"
    ) -> str:
        """
        Upload an object, overwriting any previous content.

        Args:
            container: Destination container
            path: Object path inside the container
            data: Raw bytes of the object
            content_type: MIME type of the object

        Returns:
            The object path
        """
        pass

    @abstractmethod
    async def download(self, container: str, path: str) -> bytes:
        """
        Download an object.

        Raises:
            StorageError: the container does not exist
            ObjectNotFoundError: the object does not exist
        """
        pass

    @abstractmethod
    async def exists(self, container: str, path: str) -> bool:
        """Check if an object exists."""
        pass

    async def close(self) -> None:
        """Release network resources held by the backend."""
        return None


class LocalStorage(IStorage):
    """Local filesystem storage; containers are directories under base_path."""

    def __init__(self, base_path: str = "./data/storage"):
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _container_path(self, container: str) -> Path:
        return self.base_path / container

    async def container_exists(self, container: str) -> bool:
        return self._container_path(container).is_dir()

    async def create_container(self, container: str) -> None:
        self._container_path(container).mkdir(parents=True, exist_ok=True)

    async def upload(
        self,
        container: str,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream"
    ) -> str:
        container_path = self._container_path(container)
        if not container_path.is_dir():
            raise StorageError(f"Container {container} does not exist")

        file_path = container_path / path
        file_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(file_path, "wb") as f:
                f.write(data)
        except OSError as e:
            raise StorageError(f"Upload {container}/{path} failed: {e}") from e

        return path

    async def download(self, container: str, path: str) -> bytes:
        container_path = self._container_path(container)
        if not container_path.is_dir():
            raise StorageError(f"Container {container} does not exist")

        file_path = container_path / path
        if not file_path.is_file():
            raise ObjectNotFoundError(container, path)

        with open(file_path, "rb") as f:
            return f.read()

    async def exists(self, container: str, path: str) -> bool:
        return (self._container_path(container) / path).is_file()


class AzureBlobStorage(IStorage):
    """Azure Blob Storage implementation for production."""

    def __init__(self, connection_string: str, connection_timeout: Optional[int] = None):
        kwargs = {}
        if connection_timeout:
            kwargs["connection_timeout"] = connection_timeout
        self.blob_service_client = BlobServiceClient.from_connection_string(
            connection_string, **kwargs
        )

    async def container_exists(self, container: str) -> bool:
        try:
            return await self.blob_service_client.get_container_client(container).exists()
        except AzureError as e:
            raise StorageError(f"Container check {container} failed: {e}") from e

    async def create_container(self, container: str) -> None:
        try:
            await self.blob_service_client.create_container(container)
            logger.info("container_created", container=container)
        except ResourceExistsError:
            pass
        except AzureError as e:
            raise StorageError(f"Create container {container} failed: {e}") from e

    async def upload(
        self,
        container: str,
        path: str,
        data: bytes,
        content_type: str = "application/octet-stream"
    ) -> str:
        blob_client = self.blob_service_client.get_blob_client(container=container, blob=path)
        try:
            await blob_client.upload_blob(
                data,
                overwrite=True,
                content_settings=ContentSettings(content_type=content_type),
            )
        except AzureError as e:
            raise StorageError(f"Upload {container}/{path} failed: {e}") from e

        return path

    async def download(self, container: str, path: str) -> bytes:
        if not await self.container_exists(container):
            raise StorageError(f"Container {container} does not exist")

        blob_client = self.blob_service_client.get_blob_client(container=container, blob=path)
        try:
            downloader = await blob_client.download_blob()
            return await downloader.readall()
        except ResourceNotFoundError as e:
            raise ObjectNotFoundError(container, path) from e
        except AzureError as e:
            raise StorageError(f"Download {container}/{path} failed: {e}") from e

    async def exists(self, container: str, path: str) -> bool:
        blob_client = self.blob_service_client.get_blob_client(container=container, blob=path)
        try:
            return await blob_client.exists()
        except AzureError as e:
            raise StorageError(f"Existence check {container}/{path} failed: {e}") from e

    async def close(self) -> None:
        await self.blob_service_client.close()


class StorageFactory:
    """
    Factory for creating storage instances.

    Azure Blob Storage is selected whenever AZURE_STORAGE_CONNECTION_STRING is
    configured; otherwise objects go to the local filesystem.
    """

    _instance: Optional[IStorage] = None

    @classmethod
    def get_storage(cls) -> IStorage:
        """Get the appropriate storage implementation based on configuration."""
        if cls._instance is None:
            if settings.AZURE_STORAGE_CONNECTION_STRING:
                cls._instance = AzureBlobStorage(
                    connection_string=settings.AZURE_STORAGE_CONNECTION_STRING,
                    connection_timeout=settings.AZURE_STORAGE_CONNECTION_TIMEOUT,
                )
            else:
                cls._instance = LocalStorage(base_path=settings.LOCAL_STORAGE_PATH)

        return cls._instance

    @classmethod
    def reset(cls):
        """Reset the singleton instance (useful for testing)."""
        cls._instance = None


# Convenience function for dependency injection
def get_storage() -> IStorage:
    """Get the storage instance - ready for FastAPI Depends()."""
    return StorageFactory.get_storage()
