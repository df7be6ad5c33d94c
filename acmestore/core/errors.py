"""Errors raised by the certificate lifecycle."""

from typing import Optional


class CertificateError(RuntimeError):
    """Base class for certificate lifecycle failures."""


class CertificateRequestError(CertificateError):
    """The certificate authority did not answer a request with 201 Created."""

    def __init__(self, status_code: Optional[int], detail: Optional[str] = None) -> None:
        self.status_code = status_code
        self.detail = detail
        if status_code is None:
            message = f"Certificate request failed: {detail}"
        else:
            message = f"Request status {status_code}"
            if detail:
                message = f"{message}: {detail}"
        super().__init__(message)


class IssuerFetchError(CertificateError):
    """The issuer certificate could not be downloaded or decoded."""

    def __init__(self, uri: str, reason: str) -> None:
        self.uri = uri
        super().__init__(f"Failed to fetch issuer certificate from {uri}: {reason}")


class StoreOpenError(CertificateError):
    """A certificate store could not be opened."""

    def __init__(self, store_name: str, reason: str) -> None:
        self.store_name = store_name
        super().__init__(f"Error opening certificate store {store_name}: {reason}")


class StoreUpdateError(CertificateError):
    """Enumerating or changing an open certificate store failed."""


class PrivateKeyNotExportableError(CertificateError):
    """The private key of a certificate was loaded without the exportable flag."""
