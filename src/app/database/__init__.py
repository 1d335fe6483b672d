from app.database.base import Base, DateTimeMixin, ensure_utc, utc_now
from app.database.engine import build_engine, build_session_factory

__all__ = [
    "Base",
    "DateTimeMixin",
    "build_engine",
    "build_session_factory",
    "ensure_utc",
    "utc_now",
]
