"""Client for the hosted identity provider used by the password step."""
from __future__ import annotations

import json
import logging
import urllib.error
import urllib.parse
import urllib.request
from typing import Any, Dict, Mapping, Optional

from .login import SignedInUser, SignInError

__all__ = ["GoTrueClient", "IdentityProviderError"]

LOGGER = logging.getLogger(__name__)

_REQUEST_TIMEOUT = 30


class IdentityProviderError(SignInError):
    """Raised when the identity provider answers with an error status."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _error_message(payload: Mapping[str, Any], default: str) -> str:
    for key in ("error_description", "msg", "message", "error"):
        value = payload.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return default


class GoTrueClient:
    """Password sign-in and profile role lookup against the hosted backend."""

    def __init__(self, base_url: str, api_key: str) -> None:
        if not base_url or not api_key:
            raise ValueError("identity provider URL and API key are required")
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key

    def _headers(self, access_token: Optional[str] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        headers["Authorization"] = f"Bearer {access_token or self.api_key}"
        return headers

    def _request(
        self,
        method: str,
        path: str,
        *,
        body: Optional[Mapping[str, Any]] = None,
        access_token: Optional[str] = None,
    ) -> Any:
        data = json.dumps(body).encode("utf-8") if body is not None else None
        request = urllib.request.Request(
            f"{self.base_url}{path}",
            data=data,
            headers=self._headers(access_token),
            method=method,
        )
        try:
            with urllib.request.urlopen(request, timeout=_REQUEST_TIMEOUT) as response:
                raw = response.read()
        except urllib.error.HTTPError as exc:
            try:
                payload = json.loads(exc.read() or b"{}")
            except ValueError:
                payload = {}
            if not isinstance(payload, Mapping):
                payload = {}
            raise IdentityProviderError(
                _error_message(payload, f"Request failed with status {exc.code}"),
                status_code=exc.code,
            ) from exc
        except urllib.error.URLError as exc:
            raise IdentityProviderError("Unable to reach the identity provider.") from exc

        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise IdentityProviderError("Identity provider returned invalid JSON.") from exc

    def sign_in(self, email: str, password: str) -> SignedInUser:
        payload = self._request(
            "POST",
            "/auth/v1/token?grant_type=password",
            body={"email": email, "password": password},
        )
        user = payload.get("user") if isinstance(payload, Mapping) else None
        if not isinstance(user, Mapping) or not user.get("id"):
            raise IdentityProviderError("Identity provider returned no user.")

        return SignedInUser(
            id=str(user["id"]),
            email=str(user.get("email") or email),
            access_token=payload.get("access_token"),
        )

    def role_for(self, user: SignedInUser) -> Optional[str]:
        query = urllib.parse.urlencode({"select": "role", "id": f"eq.{user.id}"})
        rows = self._request(
            "GET", f"/rest/v1/profiles?{query}", access_token=user.access_token
        )
        if not isinstance(rows, list) or not rows:
            LOGGER.info("No profile found for user %s.", user.id)
            return None

        role = rows[0].get("role") if isinstance(rows[0], Mapping) else None
        return role if isinstance(role, str) else None
