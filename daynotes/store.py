"""Encrypted, date-indexed note store.

One ``NoteStore`` owns one engine for the lifetime of the application. All
public operations are coroutines; database work runs on a worker thread.

Note text is encrypted; the dates notes belong to are not (see ``models``).
"""
from __future__ import annotations
from datetime import date, datetime, tzinfo
from enum import Enum
from pathlib import Path
from typing import Optional
import asyncio
import logging

from sqlalchemy import delete, func
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from . import config
from .crypto import FieldCipher, WrongKey
from .days import day_range_utc, month_range_utc
from .db import ensure_key_check, init_db, open_engine, session_scope
from .errors import (
    KeyUnavailable,
    QueryFailed,
    StoreCorrupted,
    StoreUnavailable,
    WriteFailed,
)
from .keyvault import KeyVault, default_vault
from .models import Note, NoteRow, utcnow

log = logging.getLogger(__name__)


class StoreState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    FAILED = "failed"


class NoteStore:
    def __init__(
        self,
        db_path: Optional[Path] = None,
        vault: Optional[KeyVault] = None,
        tz: Optional[tzinfo] = None,
    ):
        self.db_path = Path(db_path) if db_path is not None else config.db_path()
        self.vault = vault if vault is not None else default_vault(config.preferences_path())
        # None means the system zone, resolved per date
        self.tz = tz
        self.state = StoreState.UNINITIALIZED
        self._engine: Optional[Engine] = None
        self._cipher: Optional[FieldCipher] = None
        self._init_task: Optional[asyncio.Task] = None
        self._init_error: Optional[BaseException] = None

    # ---------- lifecycle ----------
    async def initialize(self) -> None:
        """Open the store once; concurrent callers share the same attempt.

        A failed attempt stays failed until initialize() is called again.
        """
        if self.state is StoreState.READY:
            return
        if self._init_task is None or self.state is StoreState.FAILED:
            self.state = StoreState.INITIALIZING
            self._init_error = None
            self._init_task = asyncio.ensure_future(self._initialize())
        await asyncio.shield(self._init_task)

    async def _initialize(self) -> None:
        try:
            engine, cipher = await asyncio.to_thread(self._open)
        except BaseException as e:
            self.state = StoreState.FAILED
            self._init_error = e
            raise
        self._engine, self._cipher = engine, cipher
        self.state = StoreState.READY
        log.info("note store ready at %s", self.db_path)

    def _open(self) -> tuple[Engine, FieldCipher]:
        try:
            key = self.vault.get_or_create_key()
        except KeyUnavailable:
            log.error("encryption key unavailable")
            raise
        except Exception as e:
            raise KeyUnavailable("encryption key could not be obtained") from e

        try:
            cipher = FieldCipher(key)
        except ValueError as e:
            raise StoreUnavailable(f"stored encryption key is malformed: {e}") from e

        engine = None
        try:
            engine = open_engine(self.db_path)
            init_db(engine)
            ensure_key_check(engine, cipher)
        except WrongKey as e:
            engine.dispose()
            raise StoreUnavailable(f"{self.db_path} cannot be opened with this key") from e
        except (SQLAlchemyError, OSError) as e:
            if engine is not None:
                engine.dispose()
            raise StoreUnavailable(f"cannot open note store at {self.db_path}: {e}") from e
        return engine, cipher

    async def close(self) -> None:
        """Dispose the engine; the next operation re-initializes."""
        task = self._init_task
        if task is not None and not task.done():
            await asyncio.gather(task, return_exceptions=True)
        engine = self._engine
        self._engine = None
        self._cipher = None
        self._init_task = None
        self._init_error = None
        self.state = StoreState.UNINITIALIZED
        if engine is not None:
            await asyncio.to_thread(engine.dispose)
            log.info("note store closed")

    async def _ready(self) -> tuple[Engine, FieldCipher]:
        if self.state is StoreState.FAILED:
            raise StoreUnavailable("note store failed to initialize; call initialize() to retry") from self._init_error
        await self.initialize()
        if self._engine is None or self._cipher is None:
            raise StoreUnavailable("note store is not open")
        return self._engine, self._cipher

    # ---------- reads ----------
    def _utc_range(self, to_range, local_date: date, error: type) -> tuple[datetime, datetime]:
        try:
            return to_range(local_date, self.tz)
        except (OverflowError, ValueError) as e:
            raise error(f"{local_date.isoformat()} is outside the supported date range") from e

    def _to_note(self, cipher: FieldCipher, row: NoteRow) -> Note:
        return Note(
            id=row.id,
            title=cipher.decrypt(row.title_token),
            body=cipher.decrypt(row.body_token),
            note_date=row.note_date,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def _select_range(self, engine: Engine, cipher: FieldCipher, start: datetime, end: datetime) -> list[Note]:
        with session_scope(engine) as s:
            stmt = select(NoteRow).where(NoteRow.note_date >= start, NoteRow.note_date < end).order_by(NoteRow.note_date.asc())
            return [self._to_note(cipher, r) for r in s.exec(stmt)]

    async def get_notes_for_month(self, local_month: date) -> list[Note]:
        engine, cipher = await self._ready()
        start, end = self._utc_range(month_range_utc, local_month, QueryFailed)
        try:
            return await asyncio.to_thread(self._select_range, engine, cipher, start, end)
        except (SQLAlchemyError, WrongKey) as e:
            raise QueryFailed(f"cannot read notes for {local_month:%Y-%m}") from e

    async def get_notes(self) -> list[Note]:
        """Every note, newest day first."""
        engine, cipher = await self._ready()

        def run() -> list[Note]:
            with session_scope(engine) as s:
                stmt = select(NoteRow).order_by(NoteRow.note_date.desc())
                return [self._to_note(cipher, r) for r in s.exec(stmt)]

        try:
            return await asyncio.to_thread(run)
        except (SQLAlchemyError, WrongKey) as e:
            raise QueryFailed("cannot read notes") from e

    @staticmethod
    def _find_row(s, start: datetime, end: datetime, local_date: date) -> Optional[NoteRow]:
        rows = list(s.exec(
            select(NoteRow).where(NoteRow.note_date >= start, NoteRow.note_date < end).limit(2)
        ))
        if len(rows) > 1:
            raise StoreCorrupted(f"more than one note stored for {local_date.isoformat()}")
        return rows[0] if rows else None

    async def get_note_for_date(self, local_date: date) -> Optional[Note]:
        engine, cipher = await self._ready()
        start, end = self._utc_range(day_range_utc, local_date, QueryFailed)

        def run() -> Optional[Note]:
            with session_scope(engine) as s:
                row = self._find_row(s, start, end, local_date)
                return None if row is None else self._to_note(cipher, row)

        try:
            return await asyncio.to_thread(run)
        except (SQLAlchemyError, WrongKey) as e:
            raise QueryFailed(f"cannot read note for {local_date.isoformat()}") from e

    # ---------- writes ----------
    async def save_note_for_date(self, local_date: date, title: str, body: str) -> Note:
        """Insert or overwrite the note for ``local_date``.

        Title and body are stored as given; callers trim them. The whole
        upsert is one transaction, so a failure leaves the old note intact.
        """
        if len(title) > config.TITLE_MAX_LENGTH:
            raise WriteFailed(f"title is longer than {config.TITLE_MAX_LENGTH} characters")
        engine, cipher = await self._ready()
        start, end = self._utc_range(day_range_utc, local_date, WriteFailed)
        # the note is keyed by the UTC instant of its local midnight
        note_date = start

        def run() -> Note:
            now = utcnow()
            with session_scope(engine) as s:
                row = self._find_row(s, start, end, local_date)
                if row is None:
                    row = NoteRow(
                        title_token=cipher.encrypt(title),
                        body_token=cipher.encrypt(body),
                        note_date=note_date,
                        created_at=now,
                        updated_at=now,
                    )
                else:
                    row.title_token = cipher.encrypt(title)
                    row.body_token = cipher.encrypt(body)
                    row.note_date = note_date
                    # created_at is kept from the first insert
                    row.updated_at = now
                s.add(row)
                s.flush()
                s.refresh(row)
                return Note(
                    id=row.id,
                    title=title,
                    body=body,
                    note_date=row.note_date,
                    created_at=row.created_at,
                    updated_at=row.updated_at,
                )

        try:
            note = await asyncio.to_thread(run)
        except SQLAlchemyError as e:
            raise WriteFailed(f"cannot save note for {local_date.isoformat()}") from e
        log.debug("saved note %s for %s", note.id, local_date.isoformat())
        return note

    async def delete_all(self) -> int:
        """Remove every note. Irreversible; returns the number of rows removed."""
        engine, _ = await self._ready()

        def run() -> int:
            with session_scope(engine) as s:
                count = s.exec(select(func.count()).select_from(NoteRow)).one()
                s.execute(delete(NoteRow))
                return int(count)

        try:
            count = await asyncio.to_thread(run)
        except SQLAlchemyError as e:
            raise WriteFailed("cannot delete notes") from e
        log.info("deleted %d notes", count)
        return count
