from typing import BinaryIO, Optional, Union

from azure.core.exceptions import ResourceNotFoundError
from azure.storage.blob import BlobServiceClient, ContentSettings

from ..config import settings
from .provider import StorageProvider


class BlobStorageProvider(StorageProvider):
    """One container per bucket; containers are public-read so URLs need no SAS."""

    def __init__(self) -> None:
        if not settings.azure_blob_connection:
            raise RuntimeError("AZURE_BLOB_CONNECTION must be set")
        self._service = BlobServiceClient.from_connection_string(settings.azure_blob_connection)
        self._prefix = settings.azure_blob_container_prefix or ""

    def _container(self, bucket: str) -> str:
        return f"{self._prefix}{bucket}"

    def _blob(self, bucket: str, key: str):
        return self._service.get_blob_client(self._container(bucket), key.lstrip("/"))

    def upload(self, bucket: str, key: str, data: Union[bytes, BinaryIO], content_type: Optional[str] = None) -> None:
        kwargs = {}
        if content_type:
            kwargs["content_settings"] = ContentSettings(content_type=content_type)
        self._blob(bucket, key).upload_blob(data, overwrite=True, **kwargs)

    def public_url(self, bucket: str, key: str) -> str:
        return self._blob(bucket, key).url

    def exists(self, bucket: str, key: str) -> bool:
        return self._blob(bucket, key).exists()

    def delete(self, bucket: str, key: str) -> None:
        try:
            self._blob(bucket, key).delete_blob()
        except ResourceNotFoundError:
            pass

    def path_from_url(self, bucket: str, url: str) -> Optional[str]:
        return super().path_from_url(self._container(bucket), url)
