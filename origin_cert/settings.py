import os
from dataclasses import dataclass, field
from typing import Optional

from origin_cert.authority import CLOUDFLARE_API_URL


@dataclass(frozen=True)
class Settings:
    """
    Resolved runtime configuration for the provisioning core.
    """
    region: str
    api_token: Optional[str] = field(default=None, repr=False)
    service_key: Optional[str] = field(default=None, repr=False)
    api_url: str = CLOUDFLARE_API_URL


def _first(*values: Optional[str]) -> Optional[str]:
    for value in values:
        if value:
            return value
    return None


def load_settings(
    region: Optional[str] = None,
    api_token: Optional[str] = None,
    service_key: Optional[str] = None,
) -> Settings:
    """
    Explicit arguments win, the environment is the fallback.
    Raises a RuntimeError when no region or no Cloudflare credential is found.
    """
    resolved_region = _first(region, os.getenv("CERTIFICATE_REGION"), os.getenv("AWS_REGION"))
    resolved_token = _first(api_token, os.getenv("CLOUDFLARE_API_TOKEN"))
    resolved_key = _first(service_key, os.getenv("CLOUDFLARE_SERVICE_API_TOKEN"))

    if not resolved_region:
        raise RuntimeError(
            "Missing AWS Region: set CERTIFICATE_REGION or AWS_REGION, or pass region explicitly"
        )
    if not resolved_token and not resolved_key:
        raise RuntimeError(
            "Missing Cloudflare API or Service Token: set CLOUDFLARE_API_TOKEN or "
            "CLOUDFLARE_SERVICE_API_TOKEN"
        )

    return Settings(
        region=resolved_region,
        api_token=resolved_token,
        service_key=resolved_key,
        api_url=os.getenv("CLOUDFLARE_API_URL") or CLOUDFLARE_API_URL,
    )
