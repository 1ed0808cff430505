import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterator, Optional, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from origin_cert.authority import SignedCertificate
from origin_cert.errors import StoreFault
from origin_cert.keys import KEY_ALGORITHM, KeyPair

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReusePolicy:
    """
    Which existing certificates may be handed back instead of minting a new one.
    """
    statuses: Tuple[str, ...] = ("ISSUED",)
    key_types: Tuple[str, ...] = (KEY_ALGORITHM,)

    def allows(self, summary: "StoredCertificate") -> bool:
        # A field missing from the summary was already filtered by the listing call
        key_algorithm = _normalise_key_algorithm(summary.key_algorithm)
        return (
            (summary.status is None or summary.status in self.statuses)
            and (key_algorithm is None or key_algorithm in self.key_types)
        )


DEFAULT_POLICY = ReusePolicy()


@dataclass(frozen=True)
class StoredCertificate:
    arn: str
    domain_name: str
    key_algorithm: Optional[str] = None
    status: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_summary(cls, summary: dict) -> "StoredCertificate":
        return cls(
            arn=summary.get("CertificateArn", ""),
            domain_name=summary.get("DomainName", ""),
            key_algorithm=summary.get("KeyAlgorithm"),
            status=summary.get("Status"),
            created_at=summary.get("CreatedAt"),
        )


def _normalise_key_algorithm(value: Optional[str]) -> Optional[str]:
    # ListCertificates filters use EC_prime256v1, some responses spell it EC-prime256v1
    return value.replace("-", "_") if value else value


class CertificateStore:
    """
    Thin adapter over a boto3 ACM client.
    """

    def __init__(self, acm_client: Any):
        self._client = acm_client

    def iter_certificates(self, policy: ReusePolicy = DEFAULT_POLICY) -> Iterator[StoredCertificate]:
        """
        Yields ACM summaries matching the policy, newest first, across every page.
        """
        paginator = self._client.get_paginator("list_certificates")
        pages = paginator.paginate(
            CertificateStatuses=list(policy.statuses),
            Includes={"keyTypes": list(policy.key_types)},
            SortBy="CREATED_AT",
            SortOrder="DESCENDING",
        )
        try:
            for page in pages:
                for summary in page.get("CertificateSummaryList", []):
                    yield StoredCertificate.from_summary(summary)
        except (ClientError, BotoCoreError) as e:
            raise StoreFault(f"Failed to list ACM certificates: {e}") from e

    def find_by_domain(self, domain_name: str, policy: ReusePolicy = DEFAULT_POLICY) -> Optional[str]:
        """
        Returns the ARN of the newest eligible certificate whose domain is exactly
        `domain_name`, or None once every page has been checked.
        """
        for cert in self.iter_certificates(policy):
            if cert.domain_name == domain_name and policy.allows(cert):
                logger.info("Found existing certificate %s for %s", cert.arn, domain_name)
                return cert.arn
        return None

    def import_certificate(self, key_pair: KeyPair, certificate: SignedCertificate) -> str:
        try:
            response = self._client.import_certificate(
                Certificate=certificate.pem.encode("utf-8"),
                PrivateKey=key_pair.private_key_pem(),
            )
        except (ClientError, BotoCoreError) as e:
            raise StoreFault(f"Failed to import certificate to ACM: {e}") from e

        arn = response["CertificateArn"]
        logger.info("Imported certificate for %s as %s", certificate.domain_name, arn)
        return arn

    def describe(self, certificate_arn: str) -> bool:
        """
        True while ACM still knows the certificate. Any lookup failure,
        not-found or otherwise, counts as gone.
        """
        try:
            self._client.describe_certificate(CertificateArn=certificate_arn)
        except (ClientError, BotoCoreError) as e:
            logger.info("Certificate %s is gone: %s", certificate_arn, e)
            return False
        return True

    def delete(self, certificate_arn: str) -> None:
        try:
            self._client.delete_certificate(CertificateArn=certificate_arn)
        except (ClientError, BotoCoreError) as e:
            raise StoreFault(f"Failed to delete certificate {certificate_arn}: {e}") from e
        logger.info("Deleted certificate %s", certificate_arn)
