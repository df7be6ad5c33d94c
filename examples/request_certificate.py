"""Request a certificate for example.com and install it into the default store."""

import logging
import os

from acmestore import CertificateService, Target, load_config
from acmestore.acme import HttpAcmeClient, JWSSigner
from acmestore.core.errors import StoreOpenError

logging.basicConfig(level=logging.INFO)


def main() -> None:
    config = load_config()
    signer = JWSSigner.from_pem_file(os.environ["ACMESTORE_ACCOUNT_KEY"])

    with HttpAcmeClient(config.base_uri, signer, timeout=config.request_timeout) as client:
        service = CertificateService(config, client)

        target = Target(host="example.com", alternative_names=["www.example.com"])
        try:
            previous = service.get_certificate(target)
        except StoreOpenError:
            previous = None

        certificate = service.request_certificate(target)
        service.install_certificate(certificate)

        if previous is not None and previous.thumbprint != certificate.thumbprint:
            service.uninstall_certificate(previous.thumbprint)

    print(f"Installed {certificate.friendly_name} ({certificate.thumbprint})")


if __name__ == "__main__":
    main()
