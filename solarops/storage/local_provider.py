"""
Local filesystem storage provider for development.
Saves files under one directory per bucket instead of Azure Blob Storage.
"""
from pathlib import Path
from typing import BinaryIO, Optional, Union
from urllib.parse import quote

from ..config import settings
from .provider import StorageProvider


class LocalStorageProvider(StorageProvider):
    """Local filesystem storage provider for development."""

    def __init__(self, base_dir: Optional[str] = None):
        self.base_dir = Path(base_dir or settings.local_storage_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def get_path(self, bucket: str, key: str) -> Path:
        # Remove leading slash and sanitize
        clean_key = key.lstrip("/").replace("..", "").replace("\\", "/")
        clean_bucket = bucket.strip("/").replace("..", "")
        return self.base_dir / clean_bucket / clean_key

    def upload(self, bucket: str, key: str, data: Union[bytes, BinaryIO], content_type: Optional[str] = None) -> None:
        path = self.get_path(bucket, key)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            if hasattr(data, "read"):
                f.write(data.read())
            else:
                f.write(data)

    def public_url(self, bucket: str, key: str) -> str:
        return f"{settings.public_base_url}/files/local/{bucket}/{quote(key.lstrip('/'))}"

    def exists(self, bucket: str, key: str) -> bool:
        return self.get_path(bucket, key).exists()

    def delete(self, bucket: str, key: str) -> None:
        path = self.get_path(bucket, key)
        if path.exists():
            path.unlink()
