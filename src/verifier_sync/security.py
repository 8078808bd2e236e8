"""Key material handling: at-rest cipher hook and certificate decoding."""

import base64
import binascii
from typing import Protocol, runtime_checkable

from cryptography import x509

from verifier_sync.exceptions import ParseFailureError


@runtime_checkable
class KeyCipher(Protocol):
    """Encrypts key material before it reaches the key store.

    The actual mechanism (platform keystore, KMS, ...) lives outside this
    package; anything with these two methods can be plugged into the engine.
    """

    def encrypt(self, plaintext: bytes) -> bytes:
        ...

    def decrypt(self, ciphertext: bytes) -> bytes:
        ...


class PlainCipher:
    """Identity cipher, stores material as received."""

    def encrypt(self, plaintext: bytes) -> bytes:
        return plaintext

    def decrypt(self, ciphertext: bytes) -> bytes:
        return ciphertext


def decode_certificate(material: bytes) -> x509.Certificate:
    """Decode key material (base64 encoded DER) into an X.509 certificate.

    Args:
        material: Raw body of a key update response

    Returns:
        Parsed certificate

    Raises:
        ParseFailureError: If the material is not base64 DER
    """
    try:
        der = base64.b64decode(material.strip(), validate=True)
        return x509.load_der_x509_certificate(der)
    except (binascii.Error, ValueError) as e:
        raise ParseFailureError(f"Invalid certificate material: {e}") from e
