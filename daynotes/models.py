"""Tables and the note value model.

Only ``title`` and ``body`` are encrypted. ``note_date``, ``created_at`` and
``updated_at`` are stored in clear so day and month ranges can be queried in
SQL, which means the file reveals which days have an entry and when it was
last edited.
"""
from __future__ import annotations
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import BigInteger, Column, LargeBinary
from sqlalchemy.types import TypeDecorator
from sqlmodel import Field, SQLModel

from .config import TITLE_MAX_LENGTH

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class UTCMicros(TypeDecorator):
    """Aware UTC datetime stored as a 64-bit count of microseconds since the epoch."""

    impl = BigInteger
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("naive datetimes cannot be stored; pass an aware UTC instant")
        delta = value.astimezone(timezone.utc) - _EPOCH
        return (delta.days * 86_400 + delta.seconds) * 1_000_000 + delta.microseconds

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return _EPOCH + timedelta(microseconds=int(value))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NoteRow(SQLModel, table=True):
    __tablename__ = "notes"

    id: Optional[int] = Field(default=None, primary_key=True)
    # Fernet tokens; plaintext never reaches the file
    title_token: bytes = Field(sa_column=Column(LargeBinary, nullable=False))
    body_token: bytes = Field(sa_column=Column(LargeBinary, nullable=False))

    # UTC instant of local midnight of the day the note belongs to
    note_date: datetime = Field(
        sa_column=Column(UTCMicros, nullable=False, unique=True, index=True)
    )
    created_at: datetime = Field(sa_column=Column(UTCMicros, nullable=False))
    updated_at: datetime = Field(sa_column=Column(UTCMicros, nullable=False))


class StoreMeta(SQLModel, table=True):
    __tablename__ = "store_meta"

    name: str = Field(primary_key=True)
    value: bytes = Field(sa_column=Column(LargeBinary, nullable=False))


class Note(SQLModel):
    """Decrypted note handed to callers."""

    id: int
    title: str = Field(default="", max_length=TITLE_MAX_LENGTH)
    body: str = ""
    note_date: datetime
    created_at: datetime
    updated_at: datetime
