from fastapi import APIRouter, Depends

from patent_search.core.config import Settings, get_settings
from patent_search.services.model_status import get_model_status

router = APIRouter()


@router.get("/lmstudio-status")
def lmstudio_status(settings: Settings = Depends(get_settings)):
    """Whether a local LM Studio server is reachable (development mode only)"""
    return get_model_status(settings)
