import logging
from typing import Any, Dict, Optional

from origin_cert.handler import dispatch
from origin_cert.reconciler import build_reconciler
from origin_cert.settings import load_settings

logger = logging.getLogger()
logger.setLevel(logging.INFO)

# --- Environment Configuration ---
# Region and Cloudflare credentials are injected by OriginCertificateStack.
SETTINGS = load_settings()

# Build ACM and Cloudflare clients outside the handler for connection re-use
reconciler = build_reconciler(SETTINGS)


def lambda_handler(event: Dict[str, Any], context: Any) -> Optional[Dict[str, Any]]:
    """
    onEvent handler for the CDK custom resource Provider framework.
    1. Custom::OriginCertificate: find-or-create on Create/Update, delete on Delete.
    2. Custom::OriginCertificateLookup: lookup only, fails when nothing matches.
    Exceptions propagate so the framework reports FAILED with the message.
    """
    return dispatch(event, reconciler)
