from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..auth.security import get_current_user
from ..config import settings
from ..db import engine


router = APIRouter(prefix="/integrations", tags=["integrations"])


@router.get("/status")
def status():
    # DB health
    db_ok = True
    try:
        with engine.connect() as conn:
            conn.execute(text("select 1"))
    except SQLAlchemyError:
        db_ok = False

    return {
        "db": db_ok,
        "storage": "blob" if settings.storage_provider == "blob" and settings.azure_blob_connection else "local",
        "site_survey_pdf": bool(settings.functions_base_url),
        "maps": bool(settings.google_places_api_key),
    }


@router.get("/maps-config")
def maps_config(_=Depends(get_current_user)):
    # Without a key the address autocomplete is simply not offered
    if not settings.google_places_api_key:
        return {"enabled": False, "api_key": None}
    return {"enabled": True, "api_key": settings.google_places_api_key}
