import uuid
from datetime import datetime, timezone

from sqlalchemy.orm import declarative_base

Base = declarative_base()


def generate_uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    # datetime.utcnow is deprecated, use datetime.now(timezone.utc) instead
    return datetime.now(timezone.utc)
