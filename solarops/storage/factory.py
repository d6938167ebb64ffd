from ..config import settings
from .blob_provider import BlobStorageProvider
from .local_provider import LocalStorageProvider
from .provider import StorageProvider


def get_storage() -> StorageProvider:
    """
    Blob storage when configured, local filesystem otherwise.
    Used as a FastAPI dependency so tests can override it.
    """
    if settings.storage_provider == "blob" and settings.azure_blob_connection:
        return BlobStorageProvider()
    return LocalStorageProvider()
