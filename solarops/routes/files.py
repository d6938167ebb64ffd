from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from ..storage.factory import get_storage
from ..storage.local_provider import LocalStorageProvider
from ..storage.provider import StorageProvider


router = APIRouter(prefix="/files", tags=["files"])


@router.get("/local/{bucket}/{key:path}")
def get_local_file(bucket: str, key: str, storage: StorageProvider = Depends(get_storage)):
    """Serves objects written by the local storage provider in development."""
    if not isinstance(storage, LocalStorageProvider):
        raise HTTPException(status_code=404, detail="Not found")
    path = storage.get_path(bucket, key)
    if not path.is_file():
        raise HTTPException(status_code=404, detail="Not found")
    return FileResponse(path)
