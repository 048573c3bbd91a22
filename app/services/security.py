import bcrypt
import logging
from typing import Optional

logger = logging.getLogger(__name__)

# bcrypt input limit, in bytes of the UTF-8 encoding
MAX_SECRET_BYTES = 72


class BcryptHasher:
    """Hashes and verifies owner passwords with bcrypt"""

    def __init__(self, rounds: int = 10):
        self.rounds = rounds

    def hash(self, plaintext: str) -> str:
        secret = plaintext.encode("utf-8")
        if len(secret) > MAX_SECRET_BYTES:
            raise ValueError(f"Password cannot be longer than {MAX_SECRET_BYTES} bytes")

        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(secret, salt).decode("utf-8")

    def verify(self, plaintext: str, hashed: Optional[str]) -> bool:
        """
        Check a password against a stored hash
        A missing or malformed stored hash never verifies, nor does an over-long password
        """
        if not plaintext or not hashed:
            return False

        secret = plaintext.encode("utf-8")
        if len(secret) > MAX_SECRET_BYTES:
            return False

        try:
            return bcrypt.checkpw(secret, hashed.encode("utf-8"))
        except ValueError:
            logger.warning("Stored password hash is not a valid bcrypt hash")
            return False
