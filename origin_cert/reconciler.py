import logging
from dataclasses import dataclass
from typing import Dict, Optional

import boto3

from origin_cert.authority import OriginAuthorityClient
from origin_cert.errors import NotFound
from origin_cert.keys import KeyAndRequestGenerator
from origin_cert.settings import Settings
from origin_cert.store import DEFAULT_POLICY, CertificateStore, ReusePolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProvisioningRecord:
    """
    State handed back to the caller: the domain (identity) and the ACM ARN.
    """
    domain_name: str
    certificate_arn: str

    @property
    def id(self) -> str:
        return self.certificate_arn

    def as_data(self) -> Dict[str, str]:
        return {
            "DomainName": self.domain_name,
            "CertificateArn": self.certificate_arn,
            "Id": self.id,
        }


def validate_domain_name(domain_name) -> str:
    if not isinstance(domain_name, str) or not domain_name.strip():
        raise ValueError("domain_name must be a non-empty string")
    return domain_name.strip()


class ProvisioningReconciler:
    """
    Find-or-create logic for one Cloudflare origin certificate per domain.

    Lifecycle per domain: Unprovisioned -> Provisioned -> Retired.
    - ensure:   reuse an eligible ACM certificate, or mint and import a new one
    - verify:   check a known ARN still exists (None means the record collapsed)
    - discover: lookup only, raises NotFound when nothing is eligible
    - retire:   delete the ACM certificate

    Nothing is retried and nothing is persisted on failure. Calls for the same
    domain must be serialised by the caller.
    """

    def __init__(
        self,
        store: CertificateStore,
        generator: KeyAndRequestGenerator,
        authority: OriginAuthorityClient,
        policy: ReusePolicy = DEFAULT_POLICY,
    ):
        self.store = store
        self.generator = generator
        self.authority = authority
        self.policy = policy

    def ensure(self, domain_name: str) -> ProvisioningRecord:
        domain_name = validate_domain_name(domain_name)

        existing_arn = self.store.find_by_domain(domain_name, self.policy)
        if existing_arn:
            logger.info("Reusing certificate %s for %s", existing_arn, domain_name)
            return ProvisioningRecord(domain_name=domain_name, certificate_arn=existing_arn)

        logger.info("No reusable certificate for %s, requesting a new one", domain_name)
        arn = self._provision(domain_name)
        return ProvisioningRecord(domain_name=domain_name, certificate_arn=arn)

    def _provision(self, domain_name: str) -> str:
        # The key pair never leaves this frame except as import material.
        key_pair, signing_request = self.generator.generate(domain_name)
        certificate = self.authority.sign(signing_request, domain_name)
        return self.store.import_certificate(key_pair, certificate)

    def verify(self, record: ProvisioningRecord) -> Optional[ProvisioningRecord]:
        if not record.certificate_arn:
            return None
        if not self.store.describe(record.certificate_arn):
            logger.info("Certificate %s for %s no longer exists", record.certificate_arn, record.domain_name)
            return None
        return record

    def discover(self, domain_name: str) -> ProvisioningRecord:
        domain_name = validate_domain_name(domain_name)
        arn = self.store.find_by_domain(domain_name, self.policy)
        if not arn:
            raise NotFound(domain_name)
        return ProvisioningRecord(domain_name=domain_name, certificate_arn=arn)

    def retire(self, record: ProvisioningRecord) -> None:
        if not record.certificate_arn:
            return
        self.store.delete(record.certificate_arn)
        logger.info("Retired certificate %s for %s", record.certificate_arn, record.domain_name)


def build_reconciler(settings: Settings) -> ProvisioningReconciler:
    """
    Composes the reconciler from resolved settings. Clients are created once
    and shared by every call made through the returned object.
    """
    acm_client = boto3.client("acm", region_name=settings.region)
    authority = OriginAuthorityClient(
        api_token=settings.api_token,
        service_key=settings.service_key,
        api_url=settings.api_url,
    )
    return ProvisioningReconciler(
        store=CertificateStore(acm_client),
        generator=KeyAndRequestGenerator(),
        authority=authority,
    )
