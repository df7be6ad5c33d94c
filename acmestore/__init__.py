"""
Certificate lifecycle management for ACME issued certificates.

This package requests certificates from an ACME certificate authority, keeps
the keys, requests and certificates on disk and installs the certificates
into certificate stores. It also provides a CLI tool for doing so.
"""

from .config import Config, load_config
from .core.models import IssuedCertificate, StoredCertificate, Target
from .service import CertificateService

__version__ = "0.1.0"
__all__ = [
    "CertificateService",
    "Config",
    "load_config",
    "Target",
    "IssuedCertificate",
    "StoredCertificate",
]
