"""Key and certificate signing request generation."""

import logging
from typing import List, Optional, Sequence

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from ..core.models import CertificateRequest, CsrDetails, CsrRecord, PrivateKeyRecord

logger = logging.getLogger(__name__)

DEFAULT_KEY_BITS = 2048
MINIMUM_KEY_BITS = 1024


def select_key_bits(configured: Optional[int]) -> int:
    """
    Pick the RSA modulus size for a new key.

    Args:
        configured: The configured bit length, ``None`` when unset or unreadable

    Returns:
        The configured size when it is at least 1024 bits, the default otherwise
    """
    if configured is None:
        logger.warning(
            f"Unable to read RSA key bits from config, using the default of {DEFAULT_KEY_BITS} bits"
        )
        return DEFAULT_KEY_BITS

    if configured >= MINIMUM_KEY_BITS:
        logger.debug(f"RSAKeyBits: {configured}")
        return configured

    logger.warning(
        f"RSA key bits less than {MINIMUM_KEY_BITS} is not secure, "
        f"using the default of {DEFAULT_KEY_BITS} bits"
    )
    return DEFAULT_KEY_BITS


def generate_private_key(key_bits: Optional[int] = None) -> rsa.RSAPrivateKey:
    """Generate an RSA private key, falling back to the default size."""
    return rsa.generate_private_key(public_exponent=65537, key_size=select_key_bits(key_bits))


def generate_csr(private_key: rsa.RSAPrivateKey, identifiers: Sequence[str]) -> x509.CertificateSigningRequest:
    """Generate a CSR with the first identifier as common name and all of them as SANs."""
    if not identifiers:
        raise ValueError("At least one identifier is required")

    names: List[x509.GeneralName] = []
    for identifier in identifiers:
        logger.debug(f"Adding {identifier} to CSR")
        names.append(x509.DNSName(_to_idna(identifier)))

    return (
        x509.CertificateSigningRequestBuilder()
        .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, _to_idna(identifiers[0]))]))
        .add_extension(x509.SubjectAlternativeName(names), critical=False)
        .sign(private_key, hashes.SHA256())
    )


def generate_request(identifiers: Sequence[str], key_bits: Optional[int] = None) -> CertificateRequest:
    """Generate a key pair and the CSR covering ``identifiers``."""
    private_key = generate_private_key(key_bits)
    csr = generate_csr(private_key, identifiers)
    return CertificateRequest(private_key=private_key, csr=csr, identifiers=list(identifiers))


def _to_idna(name: str) -> str:
    return name.encode("idna").decode("ascii")


def private_key_pem(private_key: rsa.RSAPrivateKey) -> bytes:
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.TraditionalOpenSSL,
        encryption_algorithm=serialization.NoEncryption(),
    )


def private_key_record(private_key: rsa.RSAPrivateKey) -> PrivateKeyRecord:
    """Wrap a private key in its generator-native record."""
    return PrivateKeyRecord(
        keyType="RSA",
        bitLength=private_key.key_size,
        privateKey=private_key_pem(private_key).decode("ascii"),
    )


def load_private_key_record(data: bytes) -> rsa.RSAPrivateKey:
    """Re-import a private key saved as a generator-native record."""
    record = PrivateKeyRecord.model_validate_json(data)
    private_key = serialization.load_pem_private_key(record.private_key.encode("ascii"), password=None)
    if not isinstance(private_key, rsa.RSAPrivateKey):
        raise ValueError("Not an RSA private key")
    return private_key


def csr_record(request: CertificateRequest) -> CsrRecord:
    """Wrap a CSR in its generator-native record."""
    return CsrRecord(
        details=CsrDetails(
            commonName=request.identifiers[0],
            alternativeNames=list(request.identifiers),
        ),
        digest="SHA256",
        pem=request.csr.public_bytes(serialization.Encoding.PEM).decode("ascii"),
    )


def load_csr_record(data: bytes) -> x509.CertificateSigningRequest:
    """Re-import a CSR saved as a generator-native record."""
    record = CsrRecord.model_validate_json(data)
    return x509.load_pem_x509_csr(record.pem.encode("ascii"))


def csr_common_name(csr: x509.CertificateSigningRequest) -> str:
    attributes = csr.subject.get_attributes_for_oid(NameOID.COMMON_NAME)
    return str(attributes[0].value) if attributes else ""


def csr_alternative_names(csr: x509.CertificateSigningRequest) -> List[str]:
    extension = csr.extensions.get_extension_for_class(x509.SubjectAlternativeName)
    return extension.value.get_values_for_type(x509.DNSName)
