import itertools
from typing import List, Optional
from unittest.mock import MagicMock, patch

import pytest

from origin_cert.authority import OriginAuthorityClient, SignedCertificate
from origin_cert.errors import AuthorityRejected, AuthorityTransportFault, KeyGenFault, NotFound, StoreFault
from origin_cert.keys import KeyAndRequestGenerator
from origin_cert.reconciler import ProvisioningReconciler, ProvisioningRecord, build_reconciler
from origin_cert.settings import Settings
from origin_cert.store import CertificateStore, ReusePolicy, StoredCertificate


class FakeCertificateStore:
    """
    In-memory, read-after-write consistent stand-in for CertificateStore.
    Entries are kept newest first and listed in pages of `page_size`.
    """

    def __init__(self, entries: Optional[List[StoredCertificate]] = None, page_size: int = 2):
        self.entries = list(entries or [])
        self.page_size = page_size
        self.imports = []
        self.pages_read = 0
        self._ids = itertools.count(1)

    def pages(self):
        for start in range(0, len(self.entries), self.page_size):
            self.pages_read += 1
            yield self.entries[start:start + self.page_size]

    def find_by_domain(self, domain_name, policy=ReusePolicy()):
        for page in self.pages():
            for cert in page:
                if cert.domain_name == domain_name and policy.allows(cert):
                    return cert.arn
        return None

    def import_certificate(self, key_pair, certificate):
        arn = f"arn:aws:acm:us-east-1:123456789012:certificate/imported-{next(self._ids)}"
        self.imports.append((key_pair, certificate))
        self.entries.insert(0, StoredCertificate(
            arn=arn, domain_name=certificate.domain_name, key_algorithm="EC_prime256v1", status="ISSUED",
        ))
        return arn

    def describe(self, certificate_arn):
        return any(cert.arn == certificate_arn for cert in self.entries)

    def delete(self, certificate_arn):
        if not self.describe(certificate_arn):
            raise StoreFault(f"Failed to delete certificate {certificate_arn}: not found")
        self.entries = [cert for cert in self.entries if cert.arn != certificate_arn]

    def count(self, domain_name):
        return sum(1 for cert in self.entries if cert.domain_name == domain_name)


class RecordingAuthority:
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.calls = []

    def sign(self, signing_request, domain_name):
        self.calls.append((signing_request, domain_name))
        if self.error:
            raise self.error
        return SignedCertificate(domain_name=domain_name, pem="-----BEGIN CERTIFICATE-----\n")


class ForbiddenAuthority:
    def sign(self, signing_request, domain_name):
        pytest.fail("authority must not be called when a certificate can be reused")


def stored(domain, suffix, status="ISSUED", key_algorithm="EC_prime256v1"):
    return StoredCertificate(
        arn=f"arn:aws:acm:us-east-1:123456789012:certificate/{suffix}",
        domain_name=domain,
        key_algorithm=key_algorithm,
        status=status,
    )


def make_reconciler(store=None, authority=None, generator=None):
    return ProvisioningReconciler(
        store=store if store is not None else FakeCertificateStore(),
        generator=generator or KeyAndRequestGenerator(),
        authority=authority or RecordingAuthority(),
    )


def test_ensure_twice_yields_same_handle_and_one_entry():
    store = FakeCertificateStore()
    authority = RecordingAuthority()
    reconciler = make_reconciler(store, authority)

    first = reconciler.ensure("origin.example.com")
    second = reconciler.ensure("origin.example.com")

    assert first == second
    assert first.id == first.certificate_arn
    assert store.count("origin.example.com") == 1
    assert len(authority.calls) == 1


def test_ensure_reuses_existing_certificate_without_calling_authority():
    existing = stored("origin.example.com", "existing")
    reconciler = make_reconciler(FakeCertificateStore([existing]), ForbiddenAuthority())

    record = reconciler.ensure("origin.example.com")

    assert record == ProvisioningRecord(domain_name="origin.example.com", certificate_arn=existing.arn)


def test_ensure_never_reuses_a_parent_or_sibling_domain():
    store = FakeCertificateStore([stored("sub.example.com", "sub"), stored("www.example.com", "www")])
    authority = RecordingAuthority()
    reconciler = make_reconciler(store, authority)

    record = reconciler.ensure("example.com")

    assert record.certificate_arn not in {cert.arn for cert in store.entries[1:]}
    assert authority.calls[0][1] == "example.com"


@pytest.mark.parametrize("status,key_algorithm", [
    ("REVOKED", "EC_prime256v1"),
    ("PENDING_VALIDATION", "EC_prime256v1"),
    ("EXPIRED", "EC_prime256v1"),
    ("ISSUED", "RSA_2048"),
    ("ISSUED", "EC_secp384r1"),
])
def test_ineligible_certificates_are_never_reused(status, key_algorithm):
    ineligible = stored("example.com", "ineligible", status=status, key_algorithm=key_algorithm)
    store = FakeCertificateStore([ineligible])
    reconciler = make_reconciler(store)

    record = reconciler.ensure("example.com")

    assert record.certificate_arn != ineligible.arn
    assert len(store.imports) == 1


def test_match_on_last_page_is_found():
    entries = [stored(f"host{i}.example.com", f"filler-{i}") for i in range(5)]
    entries.append(stored("origin.example.com", "on-last-page"))
    store = FakeCertificateStore(entries, page_size=2)
    reconciler = make_reconciler(store, ForbiddenAuthority())

    record = reconciler.ensure("origin.example.com")

    assert record.certificate_arn.endswith("on-last-page")
    assert store.pages_read == 3


@pytest.mark.parametrize("error", [
    AuthorityTransportFault("failed to send request: timed out"),
    AuthorityRejected("Unable to authenticate request"),
])
def test_authority_failure_never_imports(error):
    store = FakeCertificateStore()
    reconciler = make_reconciler(store, RecordingAuthority(error=error))

    with pytest.raises(type(error)):
        reconciler.ensure("origin.example.com")

    assert store.imports == []
    assert store.count("origin.example.com") == 0


def test_keygen_failure_stops_before_authority():
    generator = MagicMock(spec=KeyAndRequestGenerator)
    generator.generate.side_effect = KeyGenFault("entropy exhausted")
    authority = RecordingAuthority()
    store = FakeCertificateStore()
    reconciler = make_reconciler(store, authority, generator)

    with pytest.raises(KeyGenFault):
        reconciler.ensure("origin.example.com")

    assert authority.calls == []
    assert store.imports == []


def test_failed_ensure_restarts_from_lookup():
    store = FakeCertificateStore()
    authority = RecordingAuthority(error=AuthorityTransportFault("down"))
    reconciler = make_reconciler(store, authority)
    with pytest.raises(AuthorityTransportFault):
        reconciler.ensure("origin.example.com")

    authority.error = None
    record = reconciler.ensure("origin.example.com")

    assert store.describe(record.certificate_arn)
    assert len(authority.calls) == 2


def test_ensure_rejects_empty_domain():
    with pytest.raises(ValueError):
        make_reconciler().ensure("   ")


def test_verify_keeps_existing_record():
    existing = stored("origin.example.com", "existing")
    reconciler = make_reconciler(FakeCertificateStore([existing]))
    record = ProvisioningRecord(domain_name="origin.example.com", certificate_arn=existing.arn)

    assert reconciler.verify(record) == record


def test_verify_collapses_record_without_handle():
    reconciler = make_reconciler()

    assert reconciler.verify(ProvisioningRecord(domain_name="origin.example.com", certificate_arn="")) is None


def test_retire_then_describe_is_gone_and_verify_collapses():
    store = FakeCertificateStore()
    reconciler = make_reconciler(store)
    record = reconciler.ensure("origin.example.com")

    reconciler.retire(record)

    assert store.describe(record.certificate_arn) is False
    assert reconciler.verify(record) is None


def test_retire_failure_propagates_and_keeps_certificate():
    existing = stored("origin.example.com", "existing")
    store = FakeCertificateStore([existing])
    store.delete = MagicMock(side_effect=StoreFault("ResourceInUseException"))
    reconciler = make_reconciler(store)
    record = ProvisioningRecord(domain_name="origin.example.com", certificate_arn=existing.arn)

    with pytest.raises(StoreFault):
        reconciler.retire(record)

    assert reconciler.verify(record) == record


def test_retire_without_handle_is_noop():
    store = MagicMock()
    make_reconciler(store).retire(ProvisioningRecord(domain_name="origin.example.com", certificate_arn=""))

    store.delete.assert_not_called()


def test_discover_raises_not_found_where_ensure_creates():
    store = FakeCertificateStore()
    authority = RecordingAuthority()
    reconciler = make_reconciler(store, authority)

    with pytest.raises(NotFound) as excinfo:
        reconciler.discover("origin.example.com")
    assert "origin.example.com" in str(excinfo.value)
    assert authority.calls == []

    created = reconciler.ensure("origin.example.com")
    assert reconciler.discover("origin.example.com") == created


def test_record_data_exposes_arn_as_id():
    record = ProvisioningRecord(domain_name="origin.example.com", certificate_arn="arn:aws:acm:x")

    assert record.as_data() == {
        "DomainName": "origin.example.com",
        "CertificateArn": "arn:aws:acm:x",
        "Id": "arn:aws:acm:x",
    }


def test_build_reconciler_wires_clients_from_settings():
    settings = Settings(region="eu-west-1", api_token="token")
    with patch("origin_cert.reconciler.boto3.client") as client_factory:
        reconciler = build_reconciler(settings)

    client_factory.assert_called_once_with("acm", region_name="eu-west-1")
    assert isinstance(reconciler.store, CertificateStore)
    assert isinstance(reconciler.authority, OriginAuthorityClient)
    assert isinstance(reconciler.generator, KeyAndRequestGenerator)
