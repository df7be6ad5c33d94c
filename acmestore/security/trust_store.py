"""Installing, removing and finding certificates in certificate stores."""

import logging
from contextlib import ExitStack
from typing import Callable, List, Optional, Sequence, Tuple

from cryptography import x509

from ..core.errors import StoreOpenError, StoreUpdateError
from ..core.models import IssuedCertificate, StoredCertificate
from .store import INTERMEDIATE_STORE_NAME, CertificateStore, OpenFlags, opened

logger = logging.getLogger(__name__)

# Only certificates issued by these authorities are considered ours
KNOWN_ISSUER_FRAGMENTS = ("LE Intermediate", "Let's Encrypt")

StoreFactory = Callable[[str], CertificateStore]


def build_chain(leaf: StoredCertificate, candidates: Sequence[x509.Certificate]) -> List[StoredCertificate]:
    """
    Order a leaf and the CA certificates that issued it from leaf to root.

    Args:
        leaf: The end-entity certificate, with its private key if it has one
        candidates: CA certificates to build the chain from, in any order

    Returns:
        The chain, leaf first. Candidates not on the path are left out.
    """
    chain = [leaf]
    remaining = list(candidates)
    current = leaf.certificate
    while current.issuer != current.subject:
        issuer = next((c for c in remaining if c.subject == current.issuer), None)
        if issuer is None:
            break
        remaining.remove(issuer)
        chain.append(StoredCertificate(certificate=issuer))
        current = issuer
    return chain


def partition_chain(
    chain: Sequence[StoredCertificate],
) -> Tuple[List[StoredCertificate], List[StoredCertificate]]:
    """Split chain elements into those with a private key and those without."""
    with_key = [element for element in chain if element.has_private_key]
    without_key = [element for element in chain if not element.has_private_key]
    return with_key, without_key


def normalize_thumbprint(thumbprint: str) -> str:
    return thumbprint.replace(" ", "").replace(":", "").casefold()


def is_known_issuer(certificate: StoredCertificate, fragments: Sequence[str] = KNOWN_ISSUER_FRAGMENTS) -> bool:
    return any(fragment in certificate.issuer for fragment in fragments)


class TrustStoreManager:
    """Manages certificates in the stores produced by ``store_factory``.

    Stores are opened at the start of every operation and closed before it
    returns, no handle outlives a call.
    """

    def __init__(
        self,
        store_factory: StoreFactory,
        default_store: str,
        intermediate_store: str = INTERMEDIATE_STORE_NAME,
        issuer_fragments: Sequence[str] = KNOWN_ISSUER_FRAGMENTS,
    ) -> None:
        self.store_factory = store_factory
        self.default_store = default_store
        self.intermediate_store = intermediate_store
        self.issuer_fragments = tuple(issuer_fragments)

    def store(self, name: Optional[str] = None) -> CertificateStore:
        return self.store_factory(name or self.default_store)

    def install_certificate(
        self, certificate: IssuedCertificate, store: Optional[CertificateStore] = None
    ) -> int:
        """
        Install a certificate and the CA certificates of its chain.

        The element holding the private key goes to ``store`` (the default
        store when omitted), every other element to the intermediate store.

        Returns:
            Number of certificates added

        Raises:
            StoreOpenError: If one of the stores could not be opened
        """
        store = store or self.store()
        flags = OpenFlags.READ_WRITE

        with ExitStack() as stack:
            try:
                target = stack.enter_context(opened(store, flags))
                authorities = stack.enter_context(opened(self.store(self.intermediate_store), flags))
            except StoreOpenError as e:
                logger.error(f"Error encountered while opening certificate store: {e}")
                raise

            logger.debug(f"Adding certificate {certificate.friendly_name} to store {target.name}")
            with_key, without_key = partition_chain(build_chain(certificate, certificate.ca_certificates))

            added = 0
            for element in with_key:
                added += self._add(target, element)
            for element in without_key:
                added += self._add(authorities, element)
            return added

    @staticmethod
    def _add(store: CertificateStore, element: StoredCertificate) -> int:
        try:
            store.add(element)
        except StoreUpdateError as e:
            logger.error(f"Error saving certificate {element.subject} to {store.name}: {e}")
            return 0
        logger.debug(f"Added {element.subject} to {store.name}")
        return 1

    def uninstall_certificate(self, thumbprint: str, store: Optional[CertificateStore] = None) -> int:
        """
        Remove every certificate whose thumbprint matches, ignoring case.

        Returns:
            Number of certificates removed

        Raises:
            StoreOpenError: If the store could not be opened
            StoreUpdateError: If enumerating or removing failed
        """
        store = store or self.store()
        wanted = normalize_thumbprint(thumbprint)

        try:
            store.open(OpenFlags.OPEN_EXISTING_ONLY | OpenFlags.READ_WRITE)
        except StoreOpenError as e:
            logger.error(f"Error encountered while opening certificate store: {e}")
            raise
        logger.debug(f"Opened certificate store {store.name}")

        removed = 0
        try:
            for cert in store.certificates():
                if normalize_thumbprint(cert.thumbprint) == wanted:
                    logger.info(f"Removing certificate {cert.friendly_name}")
                    store.remove(cert)
                    removed += 1
        except StoreUpdateError as e:
            logger.error(f"Error removing certificate: {e}")
            raise
        finally:
            logger.debug(f"Closing certificate store {store.name}")
            store.close()
        return removed

    def get_certificate(self, host: str, store: Optional[CertificateStore] = None) -> Optional[StoredCertificate]:
        """
        Find the installed certificate for a host.

        Only certificates from a known issuer whose friendly name starts with
        ``host`` match. Of several matches the one issued last is returned.

        Returns:
            The certificate, or None if there is no match

        Raises:
            StoreOpenError: If the store could not be opened
            StoreUpdateError: If the store could not be enumerated
        """
        store = store or self.store()
        try:
            with opened(store, OpenFlags.OPEN_EXISTING_ONLY | OpenFlags.READ_ONLY) as handle:
                matches = [
                    cert
                    for cert in handle.certificates()
                    if is_known_issuer(cert, self.issuer_fragments) and cert.friendly_name.startswith(host)
                ]
        except StoreOpenError as e:
            logger.error(f"Error encountered while opening certificate store: {e}")
            raise
        except StoreUpdateError as e:
            logger.error(f"Error finding certificate: {e}")
            raise

        result = None
        for cert in matches:
            if result is None or cert.not_valid_before >= result.not_valid_before:
                result = cert
        return result

    def list_certificates(self, store: Optional[CertificateStore] = None) -> List[StoredCertificate]:
        """Enumerate a store read-only."""
        store = store or self.store()
        with opened(store, OpenFlags.OPEN_EXISTING_ONLY | OpenFlags.READ_ONLY) as handle:
            return handle.certificates()
