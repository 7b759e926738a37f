"""
Minimal client for the Supabase GoTrue admin API (service-role key).
"""
import logging
from typing import Optional

import requests
from fastapi import Depends

from patent_search.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

USERS_PER_PAGE = 1000


class SupabaseAdminError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class SupabaseAdminClient:
    def __init__(self, supabase_url: str, service_role_key: str, timeout: float = 10.0):
        self.base_url = f"{supabase_url.rstrip('/')}/auth/v1"
        self.service_role_key = service_role_key
        self.timeout = timeout

    @property
    def headers(self) -> dict:
        return {
            "apikey": self.service_role_key,
            "Authorization": f"Bearer {self.service_role_key}",
            "Content-Type": "application/json",
        }

    def _request(self, method: str, path: str, **kwargs) -> dict:
        try:
            response = requests.request(
                method,
                f"{self.base_url}{path}",
                headers=self.headers,
                timeout=self.timeout,
                **kwargs,
            )
        except requests.RequestException as e:
            raise SupabaseAdminError(f"{method} {path} failed: {type(e).__name__}") from e

        if not response.ok:
            logger.warning("[SUPABASE] %s %s returned %s", method, path, response.status_code)
            raise SupabaseAdminError(
                f"{method} {path} returned {response.status_code}",
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as e:
            raise SupabaseAdminError(f"{method} {path} returned a non-JSON body") from e

    def find_user_by_email(self, email: str) -> Optional[dict]:
        """Scan the admin user list page by page. Emails compare case-insensitively."""
        target = email.lower()
        page = 1
        while True:
            data = self._request("GET", "/admin/users", params={"page": page, "per_page": USERS_PER_PAGE})
            users = data.get("users", []) if isinstance(data, dict) else data
            for user in users:
                if (user.get("email") or "").lower() == target:
                    return user
            if len(users) < USERS_PER_PAGE:
                return None
            page += 1

    def create_user(self, email: str, user_metadata: dict) -> dict:
        return self._request(
            "POST",
            "/admin/users",
            json={"email": email, "email_confirm": True, "user_metadata": user_metadata},
        )

    def update_user_metadata(self, user_id: str, user_metadata: dict) -> dict:
        return self._request("PUT", f"/admin/users/{user_id}", json={"user_metadata": user_metadata})

    def generate_magic_link(self, email: str) -> str:
        """Mint a one-time magic-link token and return its hashed form."""
        data = self._request("POST", "/admin/generate_link", json={"type": "magiclink", "email": email})
        token_hash = data.get("hashed_token") or (data.get("properties") or {}).get("hashed_token")
        if not token_hash:
            raise SupabaseAdminError("generate_link response has no hashed_token")
        return token_hash


def get_supabase_admin(settings: Settings = Depends(get_settings)) -> Optional[SupabaseAdminClient]:
    """None when the service-role credentials are not configured."""
    if not settings.supabase_admin_configured:
        return None
    return SupabaseAdminClient(
        settings.SUPABASE_URL,
        settings.SUPABASE_SERVICE_ROLE_KEY,
        timeout=settings.OUTBOUND_TIMEOUT_SECONDS,
    )
