"""Core data models for certificate issuance and trust store entries."""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from pydantic import BaseModel, Field, field_validator

from .errors import PrivateKeyNotExportableError

_DNS_LABEL = re.compile(r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)$")


def is_valid_dns_name(name: str) -> bool:
    """
    Check that a host name is a syntactically valid DNS name.

    A leading ``*.`` wildcard label is accepted, internationalized names are
    checked in their IDNA form.
    """
    if not name or len(name) > 253:
        return False

    candidate = name[:-1] if name.endswith(".") else name
    if candidate.startswith("*."):
        candidate = candidate[2:]

    try:
        candidate = candidate.encode("idna").decode("ascii")
    except UnicodeError:
        return False

    return all(_DNS_LABEL.match(label) for label in candidate.split("."))


class Target(BaseModel):
    """A binding to issue one certificate for."""

    host: str
    alternative_names: List[str] = Field(default_factory=list, alias="alternativeNames")

    model_config = {"populate_by_name": True}

    @field_validator("host")
    @classmethod
    def _check_host(cls, value: str) -> str:
        if not is_valid_dns_name(value):
            raise ValueError(f"Invalid host name: {value!r}")
        return value

    @field_validator("alternative_names")
    @classmethod
    def _check_alternative_names(cls, value: List[str]) -> List[str]:
        for name in value:
            if not is_valid_dns_name(name):
                raise ValueError(f"Invalid alternative name: {name!r}")
        return value

    def get_hosts(self) -> List[str]:
        """Return the identifier set, primary host first."""
        hosts = [self.host]
        for name in self.alternative_names:
            if name not in hosts:
                hosts.append(name)
        return hosts

    @property
    def file_name_part(self) -> str:
        """Stem used for all artifact file names of this target."""
        return self.get_hosts()[0]


class PrivateKeyRecord(BaseModel):
    """Generator-native serialization of a private key (``-gen-key.json``)."""

    key_type: str = Field("RSA", alias="keyType")
    bit_length: int = Field(alias="bitLength")
    private_key: str = Field(alias="privateKey")


class CsrDetails(BaseModel):
    """Subject details a CSR was generated from."""

    common_name: str = Field(alias="commonName")
    alternative_names: List[str] = Field(alias="alternativeNames")


class CsrRecord(BaseModel):
    """Generator-native serialization of a CSR (``-gen-csr.json``)."""

    details: CsrDetails
    digest: str = "SHA256"
    pem: str


class StoreEntry(BaseModel):
    """Metadata kept beside a certificate in a directory store."""

    thumbprint: str
    friendly_name: str = Field("", alias="friendlyName")
    issuer: str
    subject: str
    has_private_key: bool = Field(False, alias="hasPrivateKey")
    exportable: bool = False
    added_at: Optional[datetime] = Field(None, alias="addedAt")


@dataclass
class CertificateRequest:
    """Key material and the CSR built from it."""

    private_key: rsa.RSAPrivateKey
    csr: x509.CertificateSigningRequest
    identifiers: List[str]

    @property
    def key_bits(self) -> int:
        return self.private_key.key_size

    def csr_der(self) -> bytes:
        return self.csr.public_bytes(serialization.Encoding.DER)


@dataclass
class Issuance:
    """Outcome of a successful certificate request."""

    certificate_der: bytes
    issuer: Optional[x509.Certificate] = None

    @property
    def certificate(self) -> x509.Certificate:
        return x509.load_der_x509_certificate(self.certificate_der)


@dataclass
class StoredCertificate:
    """A certificate as held by a certificate store."""

    certificate: x509.Certificate
    friendly_name: str = ""
    private_key: Optional[rsa.RSAPrivateKey] = None
    exportable: bool = False

    @property
    def thumbprint(self) -> str:
        """SHA-1 fingerprint of the DER encoding, upper-case hex."""
        return self.certificate.fingerprint(hashes.SHA1()).hex().upper()

    @property
    def issuer(self) -> str:
        return self.certificate.issuer.rfc4514_string()

    @property
    def subject(self) -> str:
        return self.certificate.subject.rfc4514_string()

    @property
    def has_private_key(self) -> bool:
        return self.private_key is not None

    @property
    def not_valid_before(self) -> datetime:
        return self.certificate.not_valid_before_utc

    def export_private_key(self) -> bytes:
        """Return the private key as PKCS#8 PEM."""
        if self.private_key is None:
            raise PrivateKeyNotExportableError(f"Certificate {self.thumbprint} has no private key")
        if not self.exportable:
            raise PrivateKeyNotExportableError(
                f"Private key of certificate {self.thumbprint} is not exportable"
            )
        return self.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )

    def to_entry(self) -> StoreEntry:
        return StoreEntry(
            thumbprint=self.thumbprint,
            friendlyName=self.friendly_name,
            issuer=self.issuer,
            subject=self.subject,
            hasPrivateKey=self.has_private_key,
            exportable=self.exportable,
        )


@dataclass
class IssuedCertificate(StoredCertificate):
    """A freshly issued leaf certificate with the CA certificates bundled with it."""

    ca_certificates: List[x509.Certificate] = field(default_factory=list)
    pfx_path: Optional[str] = None
