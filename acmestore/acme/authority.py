"""Adapter between the certificate lifecycle and an ACME client."""

import base64
import logging
from typing import Optional
from urllib.parse import urljoin

import httpx
from cryptography import x509

from ..core.errors import CertificateRequestError, IssuerFetchError
from ..core.models import Issuance
from .client import AcmeClient, AcmeResponse

logger = logging.getLogger(__name__)

ISSUER_LINK_RELATION = "up"


def base64url_encode(data: bytes) -> str:
    """Base64url encode without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


class CertificateAuthority:
    """Submits CSRs and resolves the issuer certificate of the result."""

    def __init__(self, client: AcmeClient, base_uri: str) -> None:
        self.client = client
        self.base_uri = base_uri

    def request_certificate(self, csr_der: bytes) -> Issuance:
        """
        Request a certificate for a DER encoded CSR.

        Args:
            csr_der: The CSR in DER encoding

        Returns:
            The issued certificate and, when the authority linked one, its issuer

        Raises:
            CertificateRequestError: If the request could not be submitted, the authority
                did not answer with 201 Created or the issued certificate is not valid DER
            IssuerFetchError: If the linked issuer certificate could not be fetched
        """
        try:
            response = self.client.submit_certificate_request(base64url_encode(csr_der))
        except (httpx.HTTPError, ValueError, RuntimeError) as e:
            logger.error(f"Certificate request failed: {e}")
            raise CertificateRequestError(None, str(e)) from e

        if response.status_code != 201:
            error = CertificateRequestError(response.status_code, response.detail)
            logger.error(f"Certificate request failed: {error}")
            raise error

        try:
            x509.load_der_x509_certificate(response.certificate_bytes)
        except ValueError as e:
            error = CertificateRequestError(response.status_code, f"issued certificate is not valid DER: {e}")
            logger.error(f"Certificate request failed: {error}")
            raise error from e

        return Issuance(
            certificate_der=response.certificate_bytes,
            issuer=self.get_issuer_certificate(response),
        )

    def get_issuer_certificate(self, response: AcmeResponse) -> Optional[x509.Certificate]:
        """Download the certificate behind the ``up`` link, if the response has one."""
        link = response.get_link(ISSUER_LINK_RELATION)
        if not link:
            logger.debug("No issuer link in the authority response")
            return None

        uri = urljoin(self.base_uri, link)
        logger.debug(f"Fetching issuer certificate from {uri}")
        try:
            return x509.load_der_x509_certificate(self.client.fetch_by_link(uri))
        except httpx.HTTPError as e:
            logger.error(f"Failed to fetch issuer certificate: {e}")
            raise IssuerFetchError(uri, str(e)) from e
        except ValueError as e:
            logger.error(f"Issuer certificate at {uri} is not valid DER: {e}")
            raise IssuerFetchError(uri, str(e)) from e
