import jwt
from typing import Optional
from .core.config import settings


# =========================
# JWT Token Handling
# =========================
# Tokens are issued by the account service; this process only verifies them.
def decode_jwt_token(token: str) -> Optional[dict]:
    """Decode and verify JWT token"""
    try:
        # Ensure SECRET_KEY is properly set
        if not settings.SECRET_KEY or settings.SECRET_KEY == "change-me-in-prod":
            return None

        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        return payload
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None
