import jwt
from datetime import datetime, timedelta, timezone
from app.core.config import settings

def generate_test_jwt(user_id="coach-1", email="coach@example.com", expires_in=timedelta(hours=1)):
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "email": email,
        "exp": now + expires_in,
        "iat": now,
    }
    token = jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
    return token
