"""Certificate stores."""

import logging
import os
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone
from enum import Enum, IntFlag
from typing import Iterator, List

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from ..core.errors import StoreOpenError, StoreUpdateError
from ..core.models import StoredCertificate, StoreEntry

logger = logging.getLogger(__name__)

INTERMEDIATE_STORE_NAME = "CA"


class StoreLocation(str, Enum):
    """Scope a certificate store belongs to."""

    LOCAL_MACHINE = "LocalMachine"
    CURRENT_USER = "CurrentUser"


class OpenFlags(IntFlag):
    """Modes a certificate store can be opened with."""

    READ_ONLY = 0
    READ_WRITE = 1
    OPEN_EXISTING_ONLY = 4


class CertificateStore(ABC):
    """Abstract base class for certificate stores.

    A store object only names a store; the handle behind it is acquired by
    ``open`` and released by ``close``.
    """

    def __init__(self, name: str, location: StoreLocation = StoreLocation.LOCAL_MACHINE) -> None:
        self.name = name
        self.location = location
        self._flags: OpenFlags = OpenFlags.READ_ONLY
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def writable(self) -> bool:
        return self._open and bool(self._flags & OpenFlags.READ_WRITE)

    def open(self, flags: OpenFlags) -> None:
        """Open the store, raising StoreOpenError on failure."""
        self._open_store(flags)
        self._flags = flags
        self._open = True

    def close(self) -> None:
        self._open = False

    def certificates(self) -> List[StoredCertificate]:
        """Enumerate all certificates in the store."""
        self._require_open()
        return self._enumerate()

    def add(self, certificate: StoredCertificate) -> None:
        self._require_writable()
        self._add(certificate)

    def remove(self, certificate: StoredCertificate) -> None:
        self._require_writable()
        self._remove(certificate)

    def _require_open(self) -> None:
        if not self._open:
            raise StoreUpdateError(f"Certificate store {self.name} is not open")

    def _require_writable(self) -> None:
        self._require_open()
        if not self.writable:
            raise StoreUpdateError(f"Certificate store {self.name} is opened read-only")

    @abstractmethod
    def _open_store(self, flags: OpenFlags) -> None:
        pass

    @abstractmethod
    def _enumerate(self) -> List[StoredCertificate]:
        pass

    @abstractmethod
    def _add(self, certificate: StoredCertificate) -> None:
        pass

    @abstractmethod
    def _remove(self, certificate: StoredCertificate) -> None:
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.location.value}\\{self.name})"


class DirectoryCertificateStore(CertificateStore):
    """Certificate store kept in a directory.

    Each entry is stored as ``<thumbprint>.pem``, an optional
    ``<thumbprint>.key.pem`` and a ``<thumbprint>.json`` metadata record.
    """

    def __init__(
        self, root: str, name: str, location: StoreLocation = StoreLocation.LOCAL_MACHINE
    ) -> None:
        super().__init__(name, location)
        self.root = root

    @property
    def path(self) -> str:
        return os.path.join(self.root, self.location.value, self.name)

    def _open_store(self, flags: OpenFlags) -> None:
        if os.path.isdir(self.path):
            return
        if flags & OpenFlags.OPEN_EXISTING_ONLY or not flags & OpenFlags.READ_WRITE:
            raise StoreOpenError(self.name, f"store does not exist at {self.path}")
        try:
            os.makedirs(self.path)
        except OSError as e:
            raise StoreOpenError(self.name, str(e)) from e

    def _files(self, thumbprint: str) -> List[str]:
        return [
            os.path.join(self.path, f"{thumbprint}.pem"),
            os.path.join(self.path, f"{thumbprint}.key.pem"),
            os.path.join(self.path, f"{thumbprint}.json"),
        ]

    def _enumerate(self) -> List[StoredCertificate]:
        try:
            names = sorted(os.listdir(self.path))
        except OSError as e:
            raise StoreUpdateError(f"Unable to enumerate certificate store {self.name}: {e}") from e

        result = []
        for name in names:
            if not name.endswith(".json"):
                continue
            cert_file, key_file, meta_file = self._files(name[: -len(".json")])
            try:
                with open(meta_file, "rb") as f:
                    entry = StoreEntry.model_validate_json(f.read())
                with open(cert_file, "rb") as f:
                    certificate = x509.load_pem_x509_certificate(f.read())
                private_key = None
                if entry.has_private_key and os.path.exists(key_file):
                    with open(key_file, "rb") as f:
                        private_key = serialization.load_pem_private_key(f.read(), password=None)
            except (OSError, ValueError) as e:
                raise StoreUpdateError(f"Corrupt entry {name} in certificate store {self.name}: {e}") from e

            if private_key is not None and not isinstance(private_key, rsa.RSAPrivateKey):
                raise StoreUpdateError(f"Entry {name} in certificate store {self.name} has an unsupported key")

            result.append(
                StoredCertificate(
                    certificate=certificate,
                    friendly_name=entry.friendly_name,
                    private_key=private_key,
                    exportable=entry.exportable,
                )
            )
        return result

    def _add(self, certificate: StoredCertificate) -> None:
        try:
            self._write_entry(certificate)
        except OSError as e:
            raise StoreUpdateError(f"Unable to add {certificate.thumbprint} to {self.name}: {e}") from e

    def _write_entry(self, certificate: StoredCertificate) -> None:
        cert_file, key_file, meta_file = self._files(certificate.thumbprint)
        with open(cert_file, "wb") as f:
            f.write(certificate.certificate.public_bytes(serialization.Encoding.PEM))

        if certificate.private_key is not None:
            key_bytes = certificate.private_key.private_bytes(
                encoding=serialization.Encoding.PEM,
                format=serialization.PrivateFormat.PKCS8,
                encryption_algorithm=serialization.NoEncryption(),
            )
            key_fd = os.open(key_file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(key_fd, "wb") as f:
                f.write(key_bytes)

        entry = certificate.to_entry()
        entry.added_at = datetime.now(timezone.utc)
        with open(meta_file, "w") as f:
            f.write(entry.model_dump_json(by_alias=True, indent=2))

    def _remove(self, certificate: StoredCertificate) -> None:
        try:
            for path in self._files(certificate.thumbprint):
                if os.path.exists(path):
                    os.remove(path)
        except OSError as e:
            raise StoreUpdateError(f"Unable to remove {certificate.thumbprint} from {self.name}: {e}") from e


@contextmanager
def opened(store: CertificateStore, flags: OpenFlags) -> Iterator[CertificateStore]:
    """Open a store for the duration of a ``with`` block."""
    store.open(flags)
    logger.debug(f"Opened certificate store {store.name}")
    try:
        yield store
    finally:
        logger.debug(f"Closing certificate store {store.name}")
        store.close()
