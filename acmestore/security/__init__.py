"""Keys, certificate artifacts and certificate stores."""

from .artifacts import ArtifactAssembler, ArtifactSet, load_archive, resolve_certificate_path
from .pki import generate_csr, generate_private_key, generate_request, select_key_bits
from .store import (
    CertificateStore,
    DirectoryCertificateStore,
    OpenFlags,
    StoreLocation,
    opened,
)
from .trust_store import TrustStoreManager, build_chain, partition_chain

__all__ = [
    "generate_request",
    "generate_private_key",
    "generate_csr",
    "select_key_bits",
    "ArtifactAssembler",
    "ArtifactSet",
    "load_archive",
    "resolve_certificate_path",
    "CertificateStore",
    "DirectoryCertificateStore",
    "OpenFlags",
    "StoreLocation",
    "opened",
    "TrustStoreManager",
    "build_chain",
    "partition_chain",
]
