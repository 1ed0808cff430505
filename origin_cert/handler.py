import logging
from typing import Any, Dict, Optional

from origin_cert.reconciler import ProvisioningReconciler, ProvisioningRecord

logger = logging.getLogger(__name__)

CERTIFICATE_RESOURCE = "Custom::OriginCertificate"
LOOKUP_RESOURCE = "Custom::OriginCertificateLookup"


def _domain_name(properties: Optional[Dict[str, Any]]) -> Optional[str]:
    return (properties or {}).get("DomainName")


def _response(record: ProvisioningRecord) -> Dict[str, Any]:
    return {"PhysicalResourceId": record.id, "Data": record.as_data()}


def _is_certificate_arn(value: Optional[str]) -> bool:
    # Failed creates leave the Provider framework's placeholder id behind
    return bool(value) and value.startswith("arn:") and ":acm:" in value


def handle_certificate(event: Dict[str, Any], reconciler: ProvisioningReconciler) -> Optional[Dict[str, Any]]:
    """
    Maps CloudFormation Create/Update/Delete onto ensure/verify/retire.
    """
    request_type = event["RequestType"]
    domain_name = _domain_name(event.get("ResourceProperties"))
    physical_id = event.get("PhysicalResourceId")

    if request_type == "Create":
        return _response(reconciler.ensure(domain_name))

    if request_type == "Update":
        old_domain = _domain_name(event.get("OldResourceProperties"))
        if old_domain != domain_name or not _is_certificate_arn(physical_id):
            # New identity: CloudFormation sends a Delete for the old physical id afterwards
            logger.info("Domain changed from %s to %s", old_domain, domain_name)
            return _response(reconciler.ensure(domain_name))

        record = reconciler.verify(ProvisioningRecord(domain_name=domain_name, certificate_arn=physical_id))
        if record is None:
            logger.warning("Certificate %s drifted away, converging %s again", physical_id, domain_name)
            return _response(reconciler.ensure(domain_name))
        return _response(record)

    if request_type == "Delete":
        if not _is_certificate_arn(physical_id):
            logger.info("Nothing to retire for physical id %s", physical_id)
            return None
        # Refresh before destroy: a certificate removed out of band is already retired
        record = reconciler.verify(ProvisioningRecord(domain_name=domain_name or "", certificate_arn=physical_id))
        if record is None:
            logger.info("Certificate %s already gone, nothing to retire", physical_id)
            return None
        reconciler.retire(record)
        return None

    raise ValueError(f"Unsupported request type: {request_type}")


def handle_lookup(event: Dict[str, Any], reconciler: ProvisioningReconciler) -> Optional[Dict[str, Any]]:
    """
    Read-only lookup of an existing certificate; fails the deployment when none exists.
    """
    request_type = event["RequestType"]
    if request_type in ("Create", "Update"):
        return _response(reconciler.discover(_domain_name(event.get("ResourceProperties"))))
    if request_type == "Delete":
        return None
    raise ValueError(f"Unsupported request type: {request_type}")


HANDLERS = {
    CERTIFICATE_RESOURCE: handle_certificate,
    LOOKUP_RESOURCE: handle_lookup,
}


def dispatch(event: Dict[str, Any], reconciler: ProvisioningReconciler) -> Optional[Dict[str, Any]]:
    resource_type = event.get("ResourceType", CERTIFICATE_RESOURCE)
    handler = HANDLERS.get(resource_type)
    if handler is None:
        raise ValueError(f"Unsupported resource type: {resource_type}")

    logger.info(
        "%s %s for %s",
        event.get("RequestType"),
        resource_type,
        _domain_name(event.get("ResourceProperties")),
    )
    return handler(event, reconciler)
