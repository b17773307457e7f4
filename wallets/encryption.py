"""
Encryption of payout destinations (bank account numbers, UPI ids).
Fernet symmetric encryption with a key derived from SECRET_KEY.
"""
import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken
from django.conf import settings


class EncryptionService:
    """
    Handles encryption/decryption of sensitive withdrawal fields.
    """

    @staticmethod
    def _get_cipher():
        # Fernet requires a base64-encoded 32-byte key
        key = hashlib.sha256(settings.SECRET_KEY.encode()).digest()
        return Fernet(base64.urlsafe_b64encode(key))

    @classmethod
    def encrypt(cls, plaintext: str) -> str:
        if not plaintext:
            return plaintext
        return cls._get_cipher().encrypt(plaintext.encode()).decode()

    @classmethod
    def decrypt(cls, ciphertext: str) -> str:
        if not ciphertext:
            return ciphertext
        return cls._get_cipher().decrypt(ciphertext.encode()).decode()

    @classmethod
    def mask_account_number(cls, encrypted_value: str) -> str:
        """****1234"""
        if not encrypted_value:
            return "****"
        try:
            plaintext = cls.decrypt(encrypted_value)
        except InvalidToken:
            return "****"
        return f"****{plaintext[-4:]}" if len(plaintext) >= 4 else "****"

    @classmethod
    def mask_upi_id(cls, encrypted_value: str) -> str:
        """ra****@okbank"""
        if not encrypted_value:
            return ""
        try:
            plaintext = cls.decrypt(encrypted_value)
        except InvalidToken:
            return "****"
        handle, _, provider = plaintext.partition('@')
        masked = f"{handle[:2]}****"
        return f"{masked}@{provider}" if provider else masked
