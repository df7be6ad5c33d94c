"""Account keys and JWS signing for ACME requests."""

import json
from typing import Any, Dict

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jwcrypto import jwk, jws


class JWSSigner:
    """Signs ACME request payloads with an RSA account key."""

    def __init__(self, account_key: jwk.JWK) -> None:
        if account_key.get("kty") != "RSA":
            raise ValueError("Not an RSA account key")
        self.account_key = account_key

    @classmethod
    def from_pem_file(cls, filename: str) -> "JWSSigner":
        """Load the account key from a PEM file."""
        with open(filename, "rb") as key_file:
            private_key = serialization.load_pem_private_key(key_file.read(), password=None)

        if not isinstance(private_key, rsa.RSAPrivateKey):
            raise ValueError("Not an RSA private key")

        return cls.from_private_key(private_key)

    @classmethod
    def from_private_key(cls, private_key: rsa.RSAPrivateKey) -> "JWSSigner":
        private_pem = private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
        return cls(jwk.JWK.from_pem(private_pem))

    @property
    def public_jwk(self) -> Dict[str, Any]:
        return json.loads(self.account_key.export_public())

    def sign(self, payload: Dict[str, Any], nonce: str) -> str:
        """Return the flattened JSON serialization of a signed payload."""
        protected = {"alg": "RS256", "jwk": self.public_jwk, "nonce": nonce}

        token = jws.JWS(json.dumps(payload).encode("utf-8"))
        token.add_signature(self.account_key, alg="RS256", protected=json.dumps(protected))
        return token.serialize()
