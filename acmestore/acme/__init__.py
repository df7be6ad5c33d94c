"""ACME client and certificate authority adapter."""

from .authority import CertificateAuthority, base64url_encode
from .client import AcmeClient, AcmeResponse, HttpAcmeClient
from .jws import JWSSigner

__all__ = [
    "AcmeClient",
    "AcmeResponse",
    "HttpAcmeClient",
    "CertificateAuthority",
    "JWSSigner",
    "base64url_encode",
]
