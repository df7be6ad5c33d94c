"""ACME protocol client used to submit certificate requests."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Optional
from urllib.parse import urljoin

import httpx

from .jws import JWSSigner

logger = logging.getLogger(__name__)


@dataclass
class AcmeResponse:
    """Answer of the authority to a certificate request."""

    status_code: int
    certificate_bytes: bytes = b""
    links: Dict[str, str] = field(default_factory=dict)
    detail: Optional[str] = None

    def get_link(self, rel: str) -> Optional[str]:
        return self.links.get(rel)


class AcmeClient(ABC):
    """Abstract base class for ACME protocol clients."""

    @abstractmethod
    def submit_certificate_request(self, csr_b64url: str) -> AcmeResponse:
        """Submit a base64url encoded DER CSR to the authority."""
        pass

    @abstractmethod
    def fetch_by_link(self, uri: str) -> bytes:
        """Download the resource behind an absolute link URI."""
        pass

    def close(self) -> None:
        pass

    def __enter__(self) -> "AcmeClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        del exc_type
        del exc_val
        del exc_tb
        self.close()


class HttpAcmeClient(AcmeClient):
    """ACME client speaking to the authority over HTTPS with httpx."""

    def __init__(
        self,
        base_uri: str,
        signer: JWSSigner,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_uri = base_uri
        self.signer = signer
        self.client = httpx.Client(timeout=timeout, transport=transport, follow_redirects=True)
        self._directory: Optional[Dict[str, str]] = None
        self._nonce: Optional[str] = None

    def _make_request(
        self,
        method: str,
        url: str,
        expected_status: int = 200,
        error_msg: str = "Request failed",
        **kwargs,
    ) -> httpx.Response:
        """Make an HTTP request with error handling."""
        try:
            response = self.client.request(method, url, **kwargs)
            self._remember_nonce(response)
            if response.status_code != expected_status:
                logger.error(f"{error_msg}: {response.status_code} - {response.text}")
                response.raise_for_status()
            return response
        except httpx.ConnectError as e:
            logger.error(f"Connection to {e.request.url} failed. Is the authority reachable?")
            raise
        except httpx.RequestError as e:
            logger.error(f"{error_msg}: {e}")
            raise

    def _remember_nonce(self, response: httpx.Response) -> None:
        nonce = response.headers.get("Replay-Nonce")
        if nonce:
            self._nonce = nonce

    def directory(self) -> Dict[str, str]:
        """Fetch and cache the authority's resource directory."""
        if self._directory is None:
            url = urljoin(self.base_uri, "/directory")
            response = self._make_request("GET", url, error_msg="Failed to fetch directory")
            self._directory = {
                key: value for key, value in response.json().items() if isinstance(value, str)
            }
        return self._directory

    def _new_nonce(self) -> str:
        if self._nonce:
            nonce, self._nonce = self._nonce, None
            return nonce

        url = self.directory().get("new-nonce") or urljoin(self.base_uri, "/directory")
        self._make_request("HEAD", url, error_msg="Failed to fetch nonce")
        if not self._nonce:
            raise RuntimeError("Authority did not supply a Replay-Nonce")
        nonce, self._nonce = self._nonce, None
        return nonce

    def submit_certificate_request(self, csr_b64url: str) -> AcmeResponse:
        url = self.directory().get("new-cert") or urljoin(self.base_uri, "/acme/new-cert")
        body = self.signer.sign({"resource": "new-cert", "csr": csr_b64url}, self._new_nonce())

        logger.debug(f"Submitting certificate request to {url}")
        response = self.client.post(
            url,
            content=body,
            headers={"Content-Type": "application/jose+json", "Accept": "application/pkix-cert"},
        )
        self._remember_nonce(response)

        links = {rel: link["url"] for rel, link in response.links.items() if link.get("url")}
        detail = None
        if response.status_code != 201:
            detail = response.text
        return AcmeResponse(
            status_code=response.status_code,
            certificate_bytes=response.content if response.status_code == 201 else b"",
            links=links,
            detail=detail,
        )

    def fetch_by_link(self, uri: str) -> bytes:
        response = self._make_request(
            "GET", uri, error_msg="Failed to fetch linked resource", headers={"Accept": "*/*"}
        )
        return response.content

    def close(self) -> None:
        self.client.close()
