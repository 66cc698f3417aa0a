"""Client-credentials token issuance against the identity provider.

Used by ``POST /auth/token`` to hand test clients an access token without
running a full OAuth dance.
"""
from __future__ import annotations
import logging
from typing import Any, Optional

import requests

from partner_bff.core.exceptions import UpstreamError, ValidationError

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 5

_CREDENTIAL_FIELDS = ("domain", "clientId", "clientSecret", "audience")


class TokenIssuer:
    """Fetches tokens with the ``client_credentials`` grant.

    Request values override the configured defaults field by field.
    """

    def __init__(
        self,
        domain: str = "",
        client_id: str = "",
        client_secret: str = "",
        audience: str = "",
        timeout: float = REQUEST_TIMEOUT,
    ):
        self.defaults = {
            "domain": domain,
            "clientId": client_id,
            "clientSecret": client_secret,
            "audience": audience,
        }
        self.timeout = timeout

    @staticmethod
    def token_url(domain: str) -> str:
        base = domain.rstrip("/")
        if not base.startswith(("http://", "https://")):
            base = f"https://{base}"
        return f"{base}/oauth/token"

    def issue_token(self, overrides: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """Request a token from the identity provider.

        Args:
            overrides: Optional body with domain, clientId, clientSecret, audience

        Returns:
            Provider response (access_token, token_type, expires_in, scope)

        Raises:
            ValidationError: Body is not an object or a credential is missing
            UpstreamError: Provider unreachable or answered non-2xx
        """
        if overrides is not None and not isinstance(overrides, dict):
            raise ValidationError("Request body must be a JSON object")
        overrides = overrides or {}
        values = {name: overrides.get(name) or self.defaults[name] for name in _CREDENTIAL_FIELDS}
        missing = [name for name, value in values.items() if not value]
        if missing:
            raise ValidationError(
                "Missing identity provider credentials: "
                f"{', '.join(missing)}. Provide them in the request body or configure them in the environment."
            )

        url = self.token_url(values["domain"])
        data = {
            "grant_type": "client_credentials",
            "client_id": values["clientId"],
            "client_secret": values["clientSecret"],
            "audience": values["audience"],
        }
        try:
            resp = requests.post(url, data=data, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.error("Token request to %s failed: %s", url, exc)
            raise UpstreamError(f"Error communicating with identity provider: {exc}") from exc

        if not 200 <= resp.status_code < 300:
            logger.error("Token request to %s returned %s", url, resp.status_code)
            raise UpstreamError(
                f"Error communicating with identity provider: HTTP {resp.status_code}: {resp.text}"
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise UpstreamError("Identity provider returned an invalid JSON response") from exc
