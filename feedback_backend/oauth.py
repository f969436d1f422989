"""
Google OAuth 2.0 authorization-code flow.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol
from urllib.parse import urlencode

import requests

from feedback_backend.sessions import Identity

AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_URL = "https://oauth2.googleapis.com/token"
USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"
REQUEST_TIMEOUT = 10


class OAuthError(Exception):
    pass


class IdentityProvider(Protocol):
    def authorization_url(self, state: str) -> str:
        ...

    def fetch_identity(self, code: str) -> Identity:
        ...


@dataclass
class GoogleOAuthClient:
    client_id: str
    client_secret: str
    redirect_url: str
    scope: str = "openid email profile"

    def authorization_url(self, state: str) -> str:
        query = urlencode(
            {
                "client_id": self.client_id,
                "redirect_uri": self.redirect_url,
                "response_type": "code",
                "scope": self.scope,
                "state": state,
                "prompt": "select_account",
            }
        )
        return f"{AUTHORIZE_URL}?{query}"

    def fetch_identity(self, code: str) -> Identity:
        try:
            token_resp = requests.post(
                TOKEN_URL,
                data={
                    "code": code,
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "redirect_uri": self.redirect_url,
                    "grant_type": "authorization_code",
                },
                timeout=REQUEST_TIMEOUT,
            )
            token_resp.raise_for_status()
            access_token = token_resp.json().get("access_token")
            if not access_token:
                raise OAuthError("Token response did not include an access token")

            info_resp = requests.get(
                USERINFO_URL,
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=REQUEST_TIMEOUT,
            )
            info_resp.raise_for_status()
            info = info_resp.json()
        except (requests.RequestException, ValueError) as exc:
            raise OAuthError(f"Google sign-in failed: {exc}") from exc

        if not info.get("sub"):
            raise OAuthError("Google did not return a user id")
        return Identity(
            id=str(info["sub"]),
            name=info.get("name") or info.get("email") or "",
            email=info.get("email") or "",
            picture=info.get("picture"),
        )
