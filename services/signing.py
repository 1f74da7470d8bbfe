import hashlib
import hmac


class HmacSigningService:
    """HMAC-SHA256 over the report hash, rendered as 0x-prefixed hex."""

    def __init__(self, secret: str):
        if not secret:
            raise ValueError("signing secret must not be empty")
        self._key = secret.encode("utf-8")

    def sign(self, content_hash: str) -> str:
        digest = hmac.new(self._key, content_hash.encode("utf-8"), hashlib.sha256).hexdigest()
        return f"0x{digest}"

    def verify(self, content_hash: str, signature: str) -> bool:
        return hmac.compare_digest(self.sign(content_hash), signature or "")
