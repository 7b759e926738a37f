"""
Reachability check for a local LM Studio server (development mode only).
"""
import logging

import requests

from patent_search.core.config import Settings
from patent_search.utils.datetime import isoformat_utc, utc_now

logger = logging.getLogger(__name__)


def get_model_status(settings: Settings) -> dict:
    if not settings.is_development:
        return {
            "connected": False,
            "available": False,
            "mode": "production",
            "message": "LM Studio is only available in development mode",
        }

    base_url = settings.LMSTUDIO_BASE_URL.rstrip("/")
    timeout = settings.MODEL_STATUS_TIMEOUT_SECONDS
    offline = {"connected": False, "available": True, "mode": "development"}

    try:
        response = requests.get(
            f"{base_url}/v1/models",
            headers={"Content-Type": "application/json"},
            timeout=timeout,
        )
        response.raise_for_status()
        data = response.json()
    except requests.Timeout:
        return {
            **offline,
            "message": f"LM Studio connection timeout ({timeout:g}s). Make sure LM Studio server is running.",
            "error": "Connection timeout",
        }
    except requests.ConnectionError:
        return {
            **offline,
            "message": "LM Studio server is not running. Start the server in LM Studio.",
            "error": "Connection refused",
        }
    except (requests.RequestException, ValueError) as e:
        logger.warning("[LMSTUDIO] Status probe failed: %s", e)
        return {
            **offline,
            "message": f"Failed to connect to LM Studio: {e}",
            "error": str(e),
        }

    # /v1/models is OpenAI-shaped and carries neither size nor modification time
    probed_at = isoformat_utc(utc_now())
    models = [
        {"name": model.get("id"), "size": 0, "modified_at": probed_at}
        for model in ((data.get("data") if isinstance(data, dict) else None) or [])
    ]
    if models:
        plural = "" if len(models) == 1 else "s"
        message = f"Connected to LM Studio with {len(models)} model{plural}"
    else:
        message = "Connected to LM Studio but no models are loaded"

    return {
        "connected": True,
        "available": True,
        "mode": "development",
        "baseUrl": base_url,
        "models": models,
        "message": message,
    }
