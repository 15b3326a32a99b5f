"""DKIM key material provider."""

import base64
import logging
from dataclasses import dataclass
from typing import Protocol

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from domain_trust.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DkimKeyPair:
    """A DKIM key pair. ``public_key`` is the base64 DER value published in DNS."""

    public_key: str
    private_key_pem: str

    def __repr__(self) -> str:
        return f"DkimKeyPair(public_key={self.public_key[:16]}...)"


class KeyProvider(Protocol):
    """Capability that creates DKIM key pairs and signs with them."""

    def generate_key_pair(self) -> DkimKeyPair: ...

    def sign(self, private_key_pem: str, data: bytes) -> bytes: ...


class RsaKeyProvider:
    """RSA key provider (rsa-sha256, the DKIM default algorithm)."""

    def __init__(self, key_size: int | None = None):
        self.key_size = key_size or settings.DKIM_KEY_SIZE

    def generate_key_pair(self) -> DkimKeyPair:
        """
        Generate a fresh RSA key pair.

        Returns:
            Key pair with the public key as base64 SubjectPublicKeyInfo DER
            (the format DKIM ``p=`` expects) and the private key as PKCS8 PEM
        """
        private_key = rsa.generate_private_key(
            public_exponent=65537,
            key_size=self.key_size,
        )

        pem_private = private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
        der_public = private_key.public_key().public_bytes(
            encoding=serialization.Encoding.DER,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )

        logger.debug(f"Generated {self.key_size}-bit DKIM key pair")
        return DkimKeyPair(
            public_key=base64.b64encode(der_public).decode("ascii"),
            private_key_pem=pem_private.decode("ascii"),
        )

    def sign(self, private_key_pem: str, data: bytes) -> bytes:
        """Sign data with RSASSA-PKCS1-v1_5 over SHA-256."""
        private_key = serialization.load_pem_private_key(
            private_key_pem.encode("ascii"),
            password=None,
        )
        return private_key.sign(data, padding.PKCS1v15(), hashes.SHA256())

    @staticmethod
    def verify(public_key: str, signature: bytes, data: bytes) -> bool:
        """Check a signature against a published base64 public key."""
        key = serialization.load_der_public_key(base64.b64decode(public_key))
        try:
            key.verify(signature, data, padding.PKCS1v15(), hashes.SHA256())
        except InvalidSignature:
            return False
        return True


# Global key provider instance
key_provider: KeyProvider = RsaKeyProvider()
