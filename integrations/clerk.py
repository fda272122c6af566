"""Clerk session token and webhook verification."""

import time
from typing import Any, Dict, Mapping, Optional

import requests
from authlib.jose import JoseError, JsonWebKey, jwt
from svix.webhooks import Webhook, WebhookVerificationError

from utils.logger import setup_logger

logger = setup_logger(name=__name__)

JWKS_CACHE_SECONDS = 3600


class AuthError(Exception):
    """Token or webhook signature could not be verified."""


class ClerkAuth:
    """
    Verifies Clerk-issued session JWTs (RS256, keys from the JWKS endpoint)
    and Svix-signed webhook payloads.
    """

    def __init__(
        self,
        jwks_url: Optional[str],
        issuer: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        clock_skew: int = 5,
    ):
        self.jwks_url = jwks_url
        self.issuer = issuer.rstrip("/") if issuer else None
        self.webhook_secret = webhook_secret
        self.clock_skew = clock_skew
        self._jwks: Optional[Dict[str, Any]] = None
        self._jwks_fetched_at = 0.0

    def _get_jwks(self) -> Dict[str, Any]:
        if self._jwks is not None and time.time() - self._jwks_fetched_at < JWKS_CACHE_SECONDS:
            return self._jwks
        if not self.jwks_url:
            raise AuthError("Clerk JWKS URL is not configured")

        response = requests.get(self.jwks_url, timeout=10)
        if response.status_code != 200:
            raise AuthError(f"Failed to fetch JWKS: HTTP {response.status_code}")
        self._jwks = response.json()
        self._jwks_fetched_at = time.time()
        logger.debug(f"Fetched {len(self._jwks.get('keys', []))} signing keys from Clerk")
        return self._jwks

    def verify_session_token(self, token: str) -> Dict[str, Any]:
        """
        Verify a Clerk session token and return its claims.

        Raises:
            AuthError: If the token is malformed, badly signed, expired or
                       issued by someone else
        """
        if not token:
            raise AuthError("Missing token")

        claims_options = None
        if self.issuer:
            claims_options = {"iss": {"essential": True, "values": [self.issuer]}}

        try:
            key_set = JsonWebKey.import_key_set(self._get_jwks())
            claims = jwt.decode(token, key_set, claims_options=claims_options)
            claims.validate(leeway=self.clock_skew)
        except (JoseError, ValueError) as exc:
            raise AuthError(f"JWT error: {exc}") from exc
        except requests.RequestException as exc:
            raise AuthError(f"Failed to fetch JWKS: {exc}") from exc

        if not claims.get("sub"):
            raise AuthError("Missing sub claim")
        return dict(claims)

    def verify_webhook(self, payload: bytes, headers: Mapping[str, str]) -> Dict[str, Any]:
        """Verify the Svix signature headers and return the decoded event."""
        if not self.webhook_secret:
            raise AuthError("Clerk webhook secret is not configured")

        svix_headers = {
            "svix-id": headers.get("svix-id", ""),
            "svix-timestamp": headers.get("svix-timestamp", ""),
            "svix-signature": headers.get("svix-signature", ""),
        }
        if not all(svix_headers.values()):
            raise AuthError("Missing svix headers")

        try:
            return Webhook(self.webhook_secret).verify(payload, svix_headers)
        except WebhookVerificationError as exc:
            raise AuthError(f"Webhook verification failed: {exc}") from exc
