import logging
from dataclasses import dataclass, field
from typing import Tuple

from cryptography import x509
from cryptography.exceptions import InternalError
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from origin_cert.errors import KeyGenFault

logger = logging.getLogger(__name__)

# ACM's name for the key type produced below
KEY_ALGORITHM = "EC_prime256v1"


@dataclass(frozen=True)
class KeyPair:
    """
    P-256 private key backing exactly one certificate.
    Lives only for the duration of one provisioning call.
    """
    private_key: ec.EllipticCurvePrivateKey = field(repr=False)

    def private_key_pem(self) -> bytes:
        return self.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption(),
        )


@dataclass(frozen=True)
class SigningRequest:
    domain_name: str
    pem: str = field(repr=False)


class KeyAndRequestGenerator:
    """
    Produces a fresh key pair and a CSR whose common name and single
    DNS subject alternative name are both the requested domain.
    """

    curve = ec.SECP256R1

    def generate(self, domain_name: str) -> Tuple[KeyPair, SigningRequest]:
        try:
            private_key = ec.generate_private_key(self.curve())
            csr = (
                x509.CertificateSigningRequestBuilder()
                .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, domain_name)]))
                .add_extension(
                    x509.SubjectAlternativeName([x509.DNSName(domain_name)]),
                    critical=False,
                )
                .sign(private_key, hashes.SHA256())
            )
        except (InternalError, OSError) as e:
            raise KeyGenFault(f"Failed to generate private key and CSR: {e}") from e

        logger.info("Generated %s key and CSR for %s", KEY_ALGORITHM, domain_name)
        csr_pem = csr.public_bytes(serialization.Encoding.PEM).decode("ascii")
        return KeyPair(private_key=private_key), SigningRequest(domain_name=domain_name, pem=csr_pem)
