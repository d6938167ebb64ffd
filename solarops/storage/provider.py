from typing import BinaryIO, Optional, Union
from urllib.parse import unquote


class StorageProvider:
    """Object storage with named buckets; keys are paths inside a bucket."""

    def upload(self, bucket: str, key: str, data: Union[bytes, BinaryIO], content_type: Optional[str] = None) -> None:
        raise NotImplementedError

    def public_url(self, bucket: str, key: str) -> str:
        raise NotImplementedError

    def exists(self, bucket: str, key: str) -> bool:
        raise NotImplementedError

    def delete(self, bucket: str, key: str) -> None:
        raise NotImplementedError

    def path_from_url(self, bucket: str, url: str) -> Optional[str]:
        """Stored key for a public URL, or None when the URL is not in this bucket."""
        marker = f"/{bucket}/"
        if not url or marker not in url:
            return None
        key = url.split(marker, 1)[1].split("?", 1)[0]
        return unquote(key) or None
