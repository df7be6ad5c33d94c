"""On-disk certificate artifacts."""

import logging
import os
from dataclasses import dataclass
from typing import List, Optional

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12

from ..core.models import CertificateRequest, Issuance, IssuedCertificate
from .pki import csr_record, private_key_pem, private_key_record

logger = logging.getLogger(__name__)


def resolve_certificate_path(configured: Optional[str], config_path: str) -> str:
    """
    Resolve the directory certificate artifacts are written to.

    Falls back to ``config_path`` when no path is configured or the configured
    one cannot be created. Never raises.
    """
    path = config_path
    if configured and configured.strip():
        try:
            os.makedirs(configured, exist_ok=True)
            path = configured
        except OSError as e:
            logger.warning(
                f"Error creating the certificate directory, {configured}. "
                f"Defaulting to config path. Error: {e}"
            )

    try:
        os.makedirs(path, exist_ok=True)
    except OSError as e:
        logger.warning(f"Unable to create config path {path}: {e}")

    logger.debug(f"Certificate folder: {path}")
    return path


@dataclass
class ArtifactSet:
    """Paths of the artifacts written for one issuance."""

    key_gen_file: str
    key_pem_file: str
    csr_gen_file: str
    csr_pem_file: str
    crt_der_file: str
    crt_pem_file: str
    chain_pem_file: str
    certificate: x509.Certificate
    issuer_der_file: Optional[str] = None
    issuer_pem_file: Optional[str] = None
    pfx_file: Optional[str] = None


class ArtifactAssembler:
    """Writes keys, requests and certificates under one directory."""

    def __init__(self, directory: str) -> None:
        self.directory = directory

    def _path(self, name: str) -> str:
        return os.path.join(self.directory, name)

    def key_gen_file(self, stem: str) -> str:
        return self._path(f"{stem}-gen-key.json")

    def key_pem_file(self, stem: str) -> str:
        return self._path(f"{stem}-key.pem")

    def csr_gen_file(self, stem: str) -> str:
        return self._path(f"{stem}-gen-csr.json")

    def csr_pem_file(self, stem: str) -> str:
        return self._path(f"{stem}-csr.pem")

    def crt_der_file(self, stem: str) -> str:
        return self._path(f"{stem}-crt.der")

    def crt_pem_file(self, stem: str) -> str:
        return self._path(f"{stem}-crt.pem")

    def issuer_der_file(self, stem: str) -> str:
        return self._path(f"ca-{stem}-crt.der")

    def issuer_pem_file(self, stem: str) -> str:
        return self._path(f"ca-{stem}-crt.pem")

    def chain_pem_file(self, stem: str) -> str:
        return self._path(f"{stem}-chain.pem")

    def pfx_file(self, stem: str) -> str:
        return self._path(f"{stem}-all.pfx")

    def persist(
        self,
        stem: str,
        request: CertificateRequest,
        issuance: Issuance,
        password: str,
        friendly_name: Optional[str] = None,
    ) -> ArtifactSet:
        """
        Write every artifact of an issuance.

        Args:
            stem: File name stem, the primary identifier of the binding
            request: Key material and CSR the certificate was requested with
            issuance: The issued certificate and optional issuer certificate
            password: Password protecting the PKCS#12 archive
            friendly_name: Label stored in the archive

        Returns:
            The written artifact paths; ``pfx_file`` is None when the archive
            could not be exported
        """
        # 1. Private key, generator record and PEM
        key_gen_file = self.key_gen_file(stem)
        record = private_key_record(request.private_key).model_dump_json(by_alias=True, indent=2)
        _write_private(key_gen_file, record.encode("utf-8"))

        key_pem_file = self.key_pem_file(stem)
        _write_private(key_pem_file, private_key_pem(request.private_key))

        # 2. CSR, generator record and PEM
        csr_gen_file = self.csr_gen_file(stem)
        with open(csr_gen_file, "w") as f:
            f.write(csr_record(request).model_dump_json(by_alias=True, indent=2))

        csr_pem_file = self.csr_pem_file(stem)
        with open(csr_pem_file, "wb") as f:
            f.write(request.csr.public_bytes(serialization.Encoding.PEM))

        # 3. Leaf certificate, PEM is re-exported from the written DER
        crt_der_file = self.crt_der_file(stem)
        logger.info(f"Saving certificate to {crt_der_file}")
        with open(crt_der_file, "wb") as f:
            f.write(issuance.certificate_der)

        crt_pem_file = self.crt_pem_file(stem)
        with open(crt_der_file, "rb") as source:
            certificate = x509.load_der_x509_certificate(source.read())
        with open(crt_pem_file, "wb") as target:
            target.write(certificate.public_bytes(serialization.Encoding.PEM))

        artifacts = ArtifactSet(
            key_gen_file=key_gen_file,
            key_pem_file=key_pem_file,
            csr_gen_file=csr_gen_file,
            csr_pem_file=csr_pem_file,
            crt_der_file=crt_der_file,
            crt_pem_file=crt_pem_file,
            chain_pem_file=self.chain_pem_file(stem),
            certificate=certificate,
        )

        # 4. Issuer certificate
        if issuance.issuer is not None:
            artifacts.issuer_der_file = self.issuer_der_file(stem)
            with open(artifacts.issuer_der_file, "wb") as f:
                f.write(issuance.issuer.public_bytes(serialization.Encoding.DER))

            artifacts.issuer_pem_file = self.issuer_pem_file(stem)
            with open(artifacts.issuer_pem_file, "wb") as f:
                f.write(issuance.issuer.public_bytes(serialization.Encoding.PEM))
        else:
            logger.warning(f"No issuer certificate for {stem}, chain will only hold the certificate")

        # 5. Chain, raw concatenation of the PEM files
        with open(artifacts.chain_pem_file, "wb") as chain:
            with open(crt_pem_file, "rb") as f:
                chain.write(f.read())
            if artifacts.issuer_pem_file:
                with open(artifacts.issuer_pem_file, "rb") as f:
                    chain.write(f.read())

        # 6. PKCS#12 archive
        cas = [issuance.issuer] if issuance.issuer is not None else []
        artifacts.pfx_file = self.export_archive(
            self.pfx_file(stem), request.private_key, certificate, cas, password, friendly_name
        )
        return artifacts

    def export_archive(
        self,
        path: str,
        private_key: rsa.RSAPrivateKey,
        certificate: x509.Certificate,
        cas: List[x509.Certificate],
        password: str,
        friendly_name: Optional[str] = None,
    ) -> Optional[str]:
        """Write a PKCS#12 archive, returning None if the export failed."""
        try:
            # A stale archive must not survive a failed export
            if os.path.exists(path):
                os.remove(path)
            data = pkcs12.serialize_key_and_certificates(
                name=friendly_name.encode("utf-8") if friendly_name else None,
                key=private_key,
                cert=certificate,
                cas=cas or None,
                encryption_algorithm=_archive_encryption(password),
            )
            _write_private(path, data)
        except (ValueError, TypeError, OSError) as e:
            logger.error(f"Error exporting archive {path}: {e}")
            return None
        return path


def _write_private(path: str, data: bytes) -> None:
    """Write a file only the owner can read."""
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    os.chmod(path, 0o600)
    with os.fdopen(fd, "wb") as f:
        f.write(data)


def _archive_encryption(password: str) -> serialization.KeySerializationEncryption:
    if password:
        return serialization.BestAvailableEncryption(password.encode("utf-8"))
    return serialization.NoEncryption()


def load_archive(path: str, password: str, exportable: bool = False) -> IssuedCertificate:
    """Load an issued certificate, its key and CA certificates from a PKCS#12 archive."""
    with open(path, "rb") as f:
        p12_data = f.read()

    bundle = pkcs12.load_pkcs12(p12_data, password.encode("utf-8") if password else None)
    if bundle.key is None or bundle.cert is None:
        raise ValueError(f"Failed to load private key or certificate from {path}")
    if not isinstance(bundle.key, rsa.RSAPrivateKey):
        raise ValueError(f"Archive {path} does not hold an RSA private key")

    friendly_name = bundle.cert.friendly_name.decode("utf-8") if bundle.cert.friendly_name else ""
    return IssuedCertificate(
        certificate=bundle.cert.certificate,
        friendly_name=friendly_name,
        private_key=bundle.key,
        exportable=exportable,
        ca_certificates=[c.certificate for c in bundle.additional_certs],
        pfx_path=path,
    )
