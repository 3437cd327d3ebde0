"""
OAuth Service - authorization-code flow against a company's IdP.

Configuration (stored in sso_configurations.configuration) carries
client_id, client_secret, auth_url, token_url, user_info_url,
redirect_uri and scopes.
"""

import secrets
from typing import Optional
from urllib.parse import urlencode

import httpx

from app.core.logging_config import get_logger

logger = get_logger(__name__)

OAUTH_TIMEOUT = 10.0


class OAuthError(Exception):
    """Raised with a short reason code used in the sign-in redirect."""

    def __init__(self, reason: str, message: str = None):
        super().__init__(message or reason)
        self.reason = reason


def generate_state(company_id: str) -> tuple:
    """Returns (nonce, state) where state = "<nonce>:<company_id>"."""
    nonce = secrets.token_hex(16)
    return nonce, f"{nonce}:{company_id}"


def build_authorize_url(provider: str, config: dict, state: str) -> str:
    params = {
        "client_id": config["client_id"],
        "redirect_uri": config["redirect_uri"],
        "scope": " ".join(config.get("scopes") or ["openid", "email", "profile"]),
        "response_type": "code",
        "state": state,
    }
    if provider == "google":
        params["access_type"] = "offline"
        params["prompt"] = "consent"
    elif provider == "microsoft":
        params["response_mode"] = "query"

    separator = "&" if "?" in config["auth_url"] else "?"
    return f"{config['auth_url']}{separator}{urlencode(params)}"


def exchange_code(config: dict, code: str, client: Optional[httpx.Client] = None) -> str:
    """Swap an authorization code for an access token."""
    http = client or httpx.Client(timeout=OAUTH_TIMEOUT)
    try:
        response = http.post(
            config["token_url"],
            data={
                "grant_type": "authorization_code",
                "client_id": config["client_id"],
                "client_secret": config["client_secret"],
                "code": code,
                "redirect_uri": config["redirect_uri"],
            },
            headers={"Accept": "application/json"},
        )
    except httpx.HTTPError as e:
        raise OAuthError("token_exchange_failed", str(e)) from e

    if not response.is_success:
        logger.error(f"Token exchange failed: {response.status_code} {response.text[:200]}")
        raise OAuthError("token_exchange_failed")

    access_token = response.json().get("access_token")
    if not access_token:
        raise OAuthError("no_access_token")
    return access_token


def fetch_userinfo(config: dict, access_token: str, client: Optional[httpx.Client] = None) -> dict:
    http = client or httpx.Client(timeout=OAUTH_TIMEOUT)
    try:
        response = http.get(
            config["user_info_url"],
            headers={"Authorization": f"Bearer {access_token}", "Accept": "application/json"},
        )
    except httpx.HTTPError as e:
        raise OAuthError("user_info_failed", str(e)) from e

    if not response.is_success:
        logger.error(f"User info fetch failed: {response.status_code} {response.text[:200]}")
        raise OAuthError("user_info_failed")
    return response.json()


def extract_user_info(provider: str, data: dict) -> dict:
    if provider == "google":
        return {
            "email": data.get("email"),
            "first_name": data.get("given_name") or "",
            "last_name": data.get("family_name") or "",
        }
    if provider == "microsoft":
        return {
            "email": data.get("mail") or data.get("userPrincipalName"),
            "first_name": data.get("givenName") or "",
            "last_name": data.get("surname") or "",
        }
    if provider == "github":
        parts = (data.get("name") or "").split(" ")
        return {
            "email": data.get("email"),
            "first_name": parts[0] if parts else "",
            "last_name": " ".join(parts[1:]),
        }
    return {
        "email": data.get("email"),
        "first_name": data.get("given_name") or data.get("first_name") or "",
        "last_name": data.get("family_name") or data.get("last_name") or "",
    }
