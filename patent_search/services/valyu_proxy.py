"""
Forwards platform API calls through the Valyu OAuth proxy so the signed-in
user's credits are used. The platform URL stays server-side.
"""
import logging
from dataclasses import dataclass
from typing import Any

import requests

from patent_search.core.config import Settings
from patent_search.core.errors import ServiceError

logger = logging.getLogger(__name__)


@dataclass
class ProxiedResponse:
    status_code: int
    content: bytes
    content_type: str
    request_id: str


def forward(settings: Settings, valyu_token: str, path: str, method: str, body: Any) -> ProxiedResponse:
    try:
        response = requests.post(
            settings.valyu_proxy_url,
            json={"path": path, "method": method, "body": body},
            headers={"Authorization": f"Bearer {valyu_token}"},
            timeout=settings.OUTBOUND_TIMEOUT_SECONDS,
        )
    except requests.RequestException as e:
        logger.error("[PROXY] Forwarding %s %s failed: %s", method, path, type(e).__name__)
        raise ServiceError("Failed to proxy request to Valyu", error="proxy_error")

    return ProxiedResponse(
        status_code=response.status_code,
        content=response.content,
        content_type=response.headers.get("content-type") or "text/plain",
        request_id=response.headers.get("X-Request-Id") or "",
    )
