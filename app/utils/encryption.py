import base64
import hashlib
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken
from app.core.config import settings

# Fernet needs 32 url-safe base64 bytes; derive them from SECRET_KEY.
key = base64.urlsafe_b64encode(hashlib.sha256(settings.SECRET_KEY.encode()).digest())
fernet = Fernet(key)

def encrypt_string(text: Optional[str]) -> Optional[str]:
    """Encrypts a provider key before it is stored on the user row."""
    if not text:
        return None
    return fernet.encrypt(text.encode()).decode()

def decrypt_string(encrypted_text: Optional[str]) -> Optional[str]:
    """Decrypts a stored provider key. Returns None if it cannot be read."""
    if not encrypted_text:
        return None
    try:
        return fernet.decrypt(encrypted_text.encode()).decode()
    except InvalidToken:
        return None
