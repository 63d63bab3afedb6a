"""Column types and defaults shared by every model"""
from datetime import datetime
import uuid

from sqlalchemy import JSON, Enum as SQLEnum, TypeDecorator, String
from sqlalchemy.dialects.postgresql import JSONB


def generate_uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how every DateTime column is stored"""
    return datetime.utcnow()


class GUID(TypeDecorator):
    """UUID stored as VARCHAR(36) on every backend"""
    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return value

    def process_result_value(self, value, dialect):
        if value is not None:
            return str(value)
        return value


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def enum_column(enum_cls):
    """Enum stored by value ("admin", not "ADMIN") as a plain VARCHAR"""
    return SQLEnum(
        enum_cls,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        validate_strings=True,
        length=32,
    )
