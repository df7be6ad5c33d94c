"""Configuration for the certificate lifecycle."""

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import click

logger = logging.getLogger(__name__)

DEFAULT_BASE_URI = "https://acme-v01.api.letsencrypt.org/"
DEFAULT_CERTIFICATE_STORE = "WebHosting"
DEFAULT_RSA_KEY_BITS = 2048


@dataclass
class Config:
    """Configuration for issuing and installing certificates."""

    base_uri: str = DEFAULT_BASE_URI
    config_path: str = "."
    certificate_path: Optional[str] = None
    certificate_store: str = DEFAULT_CERTIFICATE_STORE
    store_root: Optional[str] = None
    rsa_key_bits: Optional[int] = DEFAULT_RSA_KEY_BITS
    pfx_password: str = ""
    private_key_exportable: bool = False
    file_date_format: str = "%Y/%m/%d"
    account_key_path: Optional[str] = None
    request_timeout: float = 30.0
    verbose: bool = False

    @property
    def store_directory(self) -> str:
        """Root directory of the directory backed certificate stores."""
        return self.store_root or os.path.join(self.config_path, "stores")


def default_config_path(base_uri: str) -> str:
    """Per-authority configuration directory, e.g. ``~/.config/acmestore/acme-v01.api.letsencrypt.org``."""
    parsed = urlparse(base_uri)
    name = parsed.netloc or base_uri
    name = re.sub(r"[^A-Za-z0-9.\-]", "-", name).strip("-") or "default"
    return str(Path(click.get_app_dir("acmestore")) / name)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip().lower()
    if value in ("true", "1", "yes"):
        return True
    if value in ("false", "0", "no"):
        return False
    logger.warning(f"Invalid boolean {value!r} for {name}, defaulting to {default}")
    return default


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Invalid integer {value!r} for {name}, ignoring it")
        return None


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"Invalid number {value!r} for {name}, defaulting to {default}")
        return default


def load_config() -> Config:
    """Load configuration from environment variables.

    Invalid values are reported as warnings and replaced by defaults, this
    function never raises.
    """
    base_uri = os.getenv("ACMESTORE_BASE_URI") or DEFAULT_BASE_URI

    certificate_store = os.getenv("ACMESTORE_CERTIFICATE_STORE", DEFAULT_CERTIFICATE_STORE)
    if not certificate_store.strip():
        logger.warning(
            f"Error reading certificate store from config, defaulting to {DEFAULT_CERTIFICATE_STORE}"
        )
        certificate_store = DEFAULT_CERTIFICATE_STORE

    config = Config(
        base_uri=base_uri,
        config_path=os.getenv("ACMESTORE_CONFIG_PATH") or default_config_path(base_uri),
        certificate_path=os.getenv("ACMESTORE_CERTIFICATE_PATH"),
        certificate_store=certificate_store,
        store_root=os.getenv("ACMESTORE_STORE_ROOT"),
        rsa_key_bits=_env_int("ACMESTORE_RSA_KEY_BITS", DEFAULT_RSA_KEY_BITS),
        pfx_password=os.getenv("ACMESTORE_PFX_PASSWORD", ""),
        private_key_exportable=_env_bool("ACMESTORE_PRIVATE_KEY_EXPORTABLE", False),
        file_date_format=os.getenv("ACMESTORE_FILE_DATE_FORMAT") or "%Y/%m/%d",
        account_key_path=os.getenv("ACMESTORE_ACCOUNT_KEY"),
        request_timeout=_env_float("ACMESTORE_REQUEST_TIMEOUT", 30.0),
        verbose=_env_bool("ACMESTORE_VERBOSE", False),
    )
    logger.debug(f"Certificate store: {config.certificate_store}")
    return config
