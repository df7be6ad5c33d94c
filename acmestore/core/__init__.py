"""Core data models for the certificate lifecycle."""

from .errors import (
    CertificateError,
    CertificateRequestError,
    IssuerFetchError,
    PrivateKeyNotExportableError,
    StoreOpenError,
    StoreUpdateError,
)
from .models import (
    CertificateRequest,
    CsrDetails,
    CsrRecord,
    Issuance,
    IssuedCertificate,
    PrivateKeyRecord,
    StoredCertificate,
    StoreEntry,
    Target,
)

__all__ = [
    "Target",
    "CertificateRequest",
    "Issuance",
    "IssuedCertificate",
    "StoredCertificate",
    "StoreEntry",
    "PrivateKeyRecord",
    "CsrDetails",
    "CsrRecord",
    "CertificateError",
    "CertificateRequestError",
    "IssuerFetchError",
    "StoreOpenError",
    "StoreUpdateError",
    "PrivateKeyNotExportableError",
]
