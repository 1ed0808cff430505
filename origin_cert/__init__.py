from origin_cert.authority import OriginAuthorityClient, SignedCertificate
from origin_cert.errors import (
    AuthorityRejected,
    AuthorityTransportFault,
    KeyGenFault,
    NotFound,
    OriginCertError,
    StoreFault,
)
from origin_cert.keys import KeyAndRequestGenerator, KeyPair, SigningRequest
from origin_cert.reconciler import ProvisioningReconciler, ProvisioningRecord, build_reconciler
from origin_cert.settings import Settings, load_settings
from origin_cert.store import CertificateStore, ReusePolicy, StoredCertificate

__all__ = [
    "AuthorityRejected",
    "AuthorityTransportFault",
    "CertificateStore",
    "KeyAndRequestGenerator",
    "KeyGenFault",
    "KeyPair",
    "NotFound",
    "OriginAuthorityClient",
    "OriginCertError",
    "ProvisioningReconciler",
    "ProvisioningRecord",
    "ReusePolicy",
    "Settings",
    "SignedCertificate",
    "SigningRequest",
    "StoreFault",
    "StoredCertificate",
    "build_reconciler",
    "load_settings",
]
