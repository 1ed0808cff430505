import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests

from origin_cert.errors import AuthorityRejected, AuthorityTransportFault
from origin_cert.keys import SigningRequest

logger = logging.getLogger(__name__)

CLOUDFLARE_API_URL = "https://api.cloudflare.com/client/v4/certificates"
REQUEST_TYPE = "origin-ecc"
REQUESTED_VALIDITY_DAYS = 5475


@dataclass(frozen=True)
class SignedCertificate:
    domain_name: str
    pem: str = field(repr=False)


class OriginAuthorityClient:
    """
    Minimal client for the Cloudflare Origin CA "create certificate" call.

    Authenticates with an API token (Bearer) when one is given, otherwise
    with an Origin CA service key. One request per call, never retried.
    """

    def __init__(
        self,
        api_token: Optional[str] = None,
        service_key: Optional[str] = None,
        session: Optional[requests.Session] = None,
        api_url: str = CLOUDFLARE_API_URL,
        timeout: Optional[float] = None,
    ):
        if not api_token and not service_key:
            raise RuntimeError("Cloudflare API token or Origin CA service key is required")
        self._api_token = api_token
        self._service_key = service_key
        self._session = session or requests.Session()
        self.api_url = api_url
        self.timeout = timeout

    def __repr__(self) -> str:
        return f"OriginAuthorityClient(api_url={self.api_url!r})"

    def _auth_headers(self) -> Dict[str, str]:
        if self._api_token:
            return {"Authorization": f"Bearer {self._api_token}"}
        return {"X-Auth-User-Service-Key": self._service_key}

    def sign(self, signing_request: SigningRequest, domain_name: str) -> SignedCertificate:
        payload = {
            "csr": signing_request.pem,
            "hostnames": [domain_name],
            "request_type": REQUEST_TYPE,
            "requested_validity": REQUESTED_VALIDITY_DAYS,
        }
        headers = {"Content-Type": "application/json", **self._auth_headers()}

        logger.info("Requesting Cloudflare origin certificate for %s", domain_name)
        try:
            response = self._session.post(self.api_url, json=payload, headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise AuthorityTransportFault(f"failed to send request: {e}") from e

        try:
            body: Dict[str, Any] = response.json()
        except ValueError as e:
            raise AuthorityTransportFault(
                f"failed to parse response (HTTP {response.status_code}): {e}"
            ) from e
        if not isinstance(body, dict):
            raise AuthorityTransportFault(f"unexpected response envelope (HTTP {response.status_code})")

        if not body.get("success"):
            errors = body.get("errors") or []
            message = "unknown error"
            if errors and isinstance(errors[0], dict) and errors[0].get("message"):
                message = errors[0]["message"]
            logger.warning("Cloudflare rejected certificate request for %s: %s", domain_name, message)
            raise AuthorityRejected(message)

        result = body.get("result")
        certificate = result.get("certificate") if isinstance(result, dict) else None
        if not certificate:
            raise AuthorityTransportFault("response reported success but carried no certificate")

        return SignedCertificate(domain_name=domain_name, pem=certificate)
