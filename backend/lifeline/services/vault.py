"""
Credential Vault: authenticated encryption of sensitive patient fields.

Ciphertexts are stored as ``nonce:tag:ciphertext`` (lowercase hex) using
AES-256-GCM. Any structural, key or authentication problem raises
CryptoError; a corrupted field is never treated as empty data.
"""

import json
import secrets
from typing import Any

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from lifeline.exceptions import CryptoError

NONCE_LENGTH = 16
TAG_LENGTH = 16
KEY_HEX_LENGTH = 64


class CredentialVault:
    def __init__(self, key_hex: str):
        self._aesgcm = AESGCM(self._parse_key(key_hex))

    @staticmethod
    def _parse_key(key_hex: str) -> bytes:
        if not isinstance(key_hex, str) or len(key_hex) != KEY_HEX_LENGTH:
            raise CryptoError("Encryption key must be 64 hex characters (256 bits)")
        try:
            return bytes.fromhex(key_hex)
        except ValueError as e:
            raise CryptoError("Encryption key is not valid hex") from e

    def encrypt(self, plaintext: str) -> str:
        nonce = secrets.token_bytes(NONCE_LENGTH)
        sealed = self._aesgcm.encrypt(nonce, plaintext.encode("utf-8"), None)
        ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
        return f"{nonce.hex()}:{tag.hex()}:{ciphertext.hex()}"

    def decrypt(self, ciphertext: str) -> str:
        if not isinstance(ciphertext, str):
            raise CryptoError("Ciphertext must be a string")

        parts = ciphertext.split(":")
        if len(parts) != 3:
            raise CryptoError("Invalid ciphertext format")

        nonce_hex, tag_hex, body_hex = parts
        try:
            nonce = bytes.fromhex(nonce_hex)
            tag = bytes.fromhex(tag_hex)
            body = bytes.fromhex(body_hex)
        except ValueError as e:
            raise CryptoError("Ciphertext is not valid hex") from e

        if len(nonce) != NONCE_LENGTH or len(tag) != TAG_LENGTH:
            raise CryptoError("Invalid nonce or tag length")

        try:
            plaintext = self._aesgcm.decrypt(nonce, body + tag, None)
        except InvalidTag as e:
            raise CryptoError("Ciphertext failed authentication") from e

        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CryptoError("Decrypted data is not valid UTF-8") from e

    def encrypt_json(self, value: Any) -> str:
        return self.encrypt(json.dumps(value, ensure_ascii=False))

    def decrypt_json(self, ciphertext: str) -> Any:
        plaintext = self.decrypt(ciphertext)
        try:
            return json.loads(plaintext)
        except json.JSONDecodeError as e:
            raise CryptoError("Decrypted data is not valid JSON") from e


def generate_secure_token(length: int = 32) -> str:
    return secrets.token_hex(length)
