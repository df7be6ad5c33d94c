"""Shared fixtures: a throwaway CA hierarchy and a fake ACME client."""

import base64
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from acmestore.acme.client import AcmeClient, AcmeResponse
from acmestore.config import Config
from acmestore.core.models import CertificateRequest, Issuance, IssuedCertificate
from acmestore.security.pki import generate_request
from acmestore.security.store import DirectoryCertificateStore

BASE_URI = "https://acme.test/"
ISSUER_LINK = "/acme/issuer-cert"


def _name(common_name: str, organization: Optional[str] = None) -> x509.Name:
    attributes = [x509.NameAttribute(NameOID.COMMON_NAME, common_name)]
    if organization:
        attributes.insert(0, x509.NameAttribute(NameOID.ORGANIZATION_NAME, organization))
    return x509.Name(attributes)


def _key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


class FakeAuthority:
    """Root and intermediate CA able to sign leaf certificates."""

    def __init__(
        self, intermediate_cn: str = "Let's Encrypt Authority X3", organization: str = "Let's Encrypt"
    ) -> None:
        self.root_key = _key()
        self.root_cert = self._build(
            _name("Test Root X1", "Test Trust"), _name("Test Root X1", "Test Trust"),
            self.root_key.public_key(), self.root_key, ca=True,
        )
        self.intermediate_key = _key()
        self.intermediate_cert = self._build(
            _name(intermediate_cn, organization), self.root_cert.subject,
            self.intermediate_key.public_key(), self.root_key, ca=True,
        )

    @staticmethod
    def _build(subject, issuer, public_key, signing_key, ca=False, hosts=None, not_before=None):
        not_before = not_before or datetime.now(timezone.utc) - timedelta(days=1)
        builder = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(issuer)
            .public_key(public_key)
            .serial_number(x509.random_serial_number())
            .not_valid_before(not_before)
            .not_valid_after(not_before + timedelta(days=90))
            .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
        )
        if hosts:
            builder = builder.add_extension(
                x509.SubjectAlternativeName([x509.DNSName(h) for h in hosts]), critical=False
            )
        return builder.sign(signing_key, hashes.SHA256())

    def issue(self, public_key, hosts: List[str], not_before: Optional[datetime] = None) -> x509.Certificate:
        return self._build(
            _name(hosts[0]), self.intermediate_cert.subject, public_key,
            self.intermediate_key, hosts=hosts, not_before=not_before,
        )

    def issue_leaf(self, hosts: List[str], friendly_name: str = "", not_before=None) -> IssuedCertificate:
        key = _key()
        return IssuedCertificate(
            certificate=self.issue(key.public_key(), hosts, not_before=not_before),
            friendly_name=friendly_name,
            private_key=key,
            ca_certificates=[self.intermediate_cert, self.root_cert],
        )


class FakeAcmeClient(AcmeClient):
    """ACME client answering from a FakeAuthority."""

    def __init__(self, authority: FakeAuthority, status_code: int = 201,
                 issuer_link: Optional[str] = ISSUER_LINK, fetch_error: Optional[Exception] = None) -> None:
        self.authority = authority
        self.status_code = status_code
        self.issuer_link = issuer_link
        self.fetch_error = fetch_error
        self.submitted: List[str] = []
        self.fetched: List[str] = []

    def submit_certificate_request(self, csr_b64url: str) -> AcmeResponse:
        self.submitted.append(csr_b64url)
        if self.status_code != 201:
            return AcmeResponse(status_code=self.status_code, detail="urn:acme:error:malformed")

        padded = csr_b64url + "=" * (-len(csr_b64url) % 4)
        csr = x509.load_der_x509_csr(base64.urlsafe_b64decode(padded))
        hosts = csr.extensions.get_extension_for_class(x509.SubjectAlternativeName).value.get_values_for_type(
            x509.DNSName
        )
        certificate = self.authority.issue(csr.public_key(), hosts)
        links = {"up": self.issuer_link} if self.issuer_link else {}
        return AcmeResponse(
            status_code=201,
            certificate_bytes=certificate.public_bytes(serialization.Encoding.DER),
            links=links,
        )

    def fetch_by_link(self, uri: str) -> bytes:
        self.fetched.append(uri)
        if self.fetch_error is not None:
            raise self.fetch_error
        return self.authority.intermediate_cert.public_bytes(serialization.Encoding.DER)


@pytest.fixture(scope="session")
def authority() -> FakeAuthority:
    return FakeAuthority()


@pytest.fixture
def acme_client(authority) -> FakeAcmeClient:
    return FakeAcmeClient(authority)


@pytest.fixture
def config(tmp_path) -> Config:
    return Config(
        base_uri=BASE_URI,
        config_path=str(tmp_path / "config"),
        certificate_path=str(tmp_path / "certs"),
        store_root=str(tmp_path / "stores"),
        rsa_key_bits=2048,
        pfx_password="secret",
    )


@pytest.fixture(scope="session")
def certificate_request() -> CertificateRequest:
    return generate_request(["example.com", "www.example.com"], 2048)


@pytest.fixture(scope="session")
def issuance(authority, certificate_request) -> Issuance:
    certificate = authority.issue(certificate_request.private_key.public_key(), certificate_request.identifiers)
    return Issuance(
        certificate_der=certificate.public_bytes(serialization.Encoding.DER),
        issuer=authority.intermediate_cert,
    )


@pytest.fixture
def store_factory(tmp_path):
    root = str(tmp_path / "stores")

    def factory(name: str) -> DirectoryCertificateStore:
        return DirectoryCertificateStore(root, name)

    return factory
