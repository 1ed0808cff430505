class OriginCertError(Exception):
    """
    Base class for every failure raised by the provisioning core.
    """


class KeyGenFault(OriginCertError):
    """The crypto backend could not produce a key pair or signing request."""


class AuthorityTransportFault(OriginCertError):
    """The certificate authority could not be reached or answered garbage."""


class AuthorityRejected(OriginCertError):
    """
    The certificate authority answered with success = false.
    The authority's own error message is kept verbatim in `message`.
    """

    def __init__(self, message: str):
        super().__init__(f"Cloudflare API error: {message}")
        self.message = message


class StoreFault(OriginCertError):
    """ACM refused a list, import or delete call."""


class NotFound(OriginCertError):
    """A lookup found no eligible certificate for the domain."""

    def __init__(self, domain_name: str):
        super().__init__(f"No issued EC_prime256v1 certificate found for domain: {domain_name}")
        self.domain_name = domain_name
