from typing import Optional

from fastapi import APIRouter, Depends, Header, Response

from patent_search.core.config import Settings, get_settings
from patent_search.core.errors import AuthError, ValidationError
from patent_search.schemas.chat import ProxyRequest
from patent_search.services.valyu_proxy import forward

router = APIRouter()


@router.post("/valyu-proxy")
def valyu_proxy(
    payload: ProxyRequest,
    x_valyu_token: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
):
    """
    Relay a platform API call with the user's Valyu token.
    Upstream status, body and content type are passed through unchanged.
    """
    if not x_valyu_token:
        raise AuthError("Valyu access token required", error="missing_token")
    if not payload.path:
        raise ValidationError("path is required")

    proxied = forward(settings, x_valyu_token, payload.path, payload.method, payload.body)
    return Response(
        content=proxied.content,
        status_code=proxied.status_code,
        media_type=proxied.content_type,
        headers={"X-Proxy-Request-Id": proxied.request_id},
    )
