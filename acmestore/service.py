"""Certificate lifecycle service: request, install, uninstall and find certificates."""

import functools
import logging
from datetime import datetime
from typing import List, Optional, Union

from .acme.authority import CertificateAuthority
from .acme.client import AcmeClient
from .config import Config
from .core.models import IssuedCertificate, StoredCertificate, Target
from .security.artifacts import ArtifactAssembler, load_archive, resolve_certificate_path
from .security.pki import generate_request
from .security.store import DirectoryCertificateStore
from .security.trust_store import StoreFactory, TrustStoreManager

logger = logging.getLogger(__name__)


class CertificateService:
    """Issues certificates through an ACME authority and manages them in certificate stores."""

    def __init__(
        self,
        config: Config,
        client: Optional[AcmeClient] = None,
        store_factory: Optional[StoreFactory] = None,
    ) -> None:
        """Initialize the service and resolve the certificate directory."""
        self.config = config
        self.authority = CertificateAuthority(client, config.base_uri) if client else None
        self.certificate_path = resolve_certificate_path(config.certificate_path, config.config_path)
        self.artifacts = ArtifactAssembler(self.certificate_path)

        if store_factory is None:
            store_factory = functools.partial(DirectoryCertificateStore, config.store_directory)
        self.trust_store = TrustStoreManager(store_factory, config.certificate_store)

    def friendly_name(self, target: Target) -> str:
        return f"{target.host} {datetime.now().strftime(self.config.file_date_format)}"

    def pfx_file_path(self, target: Union[Target, str]) -> str:
        stem = target.file_name_part if isinstance(target, Target) else target
        return self.artifacts.pfx_file(stem)

    def request_certificate(self, target: Target) -> IssuedCertificate:
        """
        Request a certificate for every host of a target and save all artifacts.

        Args:
            target: The binding to request the certificate for

        Returns:
            The issued certificate with its key and friendly name

        Raises:
            CertificateRequestError: If the authority rejected the request
            IssuerFetchError: If the issuer certificate could not be fetched
        """
        if self.authority is None:
            raise RuntimeError("No ACME client configured")

        identifiers = target.get_hosts()
        stem = target.file_name_part
        friendly_name = self.friendly_name(target)

        request = generate_request(identifiers, self.config.rsa_key_bits)

        logger.info(f"Requesting certificate {friendly_name}")
        issuance = self.authority.request_certificate(request.csr_der())

        artifacts = self.artifacts.persist(
            stem, request, issuance, self.config.pfx_password, friendly_name
        )

        exportable = self.config.private_key_exportable
        if exportable:
            logger.debug("Set private key exportable")

        if artifacts.pfx_file:
            issued = load_archive(artifacts.pfx_file, self.config.pfx_password, exportable)
        else:
            issued = IssuedCertificate(
                certificate=artifacts.certificate,
                private_key=request.private_key,
                exportable=exportable,
                ca_certificates=[issuance.issuer] if issuance.issuer is not None else [],
            )
        issued.friendly_name = friendly_name
        return issued

    def install_certificate(self, certificate: IssuedCertificate, store_name: Optional[str] = None) -> int:
        """Install a certificate and its chain, returning the number of certificates added."""
        return self.trust_store.install_certificate(certificate, self.trust_store.store(store_name))

    def uninstall_certificate(self, thumbprint: str, store_name: Optional[str] = None) -> int:
        """Remove certificates by thumbprint, returning how many were removed."""
        return self.trust_store.uninstall_certificate(thumbprint, self.trust_store.store(store_name))

    def get_certificate(
        self, target: Union[Target, str], store_name: Optional[str] = None
    ) -> Optional[StoredCertificate]:
        """Find the installed certificate for a target or host name."""
        host = target.host if isinstance(target, Target) else target
        return self.trust_store.get_certificate(host, self.trust_store.store(store_name))

    def load_certificate(self, target: Union[Target, str]) -> IssuedCertificate:
        """Load a previously issued certificate from its PKCS#12 archive."""
        return load_archive(
            self.pfx_file_path(target), self.config.pfx_password, self.config.private_key_exportable
        )

    def list_certificates(self, store_name: Optional[str] = None) -> List[StoredCertificate]:
        return self.trust_store.list_certificates(self.trust_store.store(store_name))
