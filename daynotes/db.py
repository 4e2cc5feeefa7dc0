from pathlib import Path
import logging
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, Session, create_engine, select
from contextlib import contextmanager

from .crypto import FieldCipher
from .models import NoteRow, StoreMeta  # noqa: F401  (registers the tables)

log = logging.getLogger(__name__)

KEY_CHECK_NAME = "key_check"


def open_engine(db_path: Path) -> Engine:
    db_path.parent.mkdir(parents=True, exist_ok=True)
    # store work runs on worker threads, so the connection must not be thread-pinned
    return create_engine(
        f"sqlite:///{db_path}",
        echo=False,
        future=True,
        connect_args={"check_same_thread": False},
    )


def init_db(engine: Engine) -> None:
    """Create missing tables. Existing tables and rows are left alone."""
    SQLModel.metadata.create_all(engine)


def ensure_key_check(engine: Engine, cipher: FieldCipher) -> None:
    """Verify the key against the stored check token, writing one on a fresh file.

    Raises ``crypto.WrongKey`` when the file was created under another key.
    """
    with session_scope(engine) as s:
        row = s.exec(select(StoreMeta).where(StoreMeta.name == KEY_CHECK_NAME)).first()
        if row is None:
            s.add(StoreMeta(name=KEY_CHECK_NAME, value=cipher.make_key_check()))
            log.info("wrote key check to new store")
        else:
            cipher.verify_key_check(row.value)


def get_session(engine: Engine) -> Session:
    # keep objects alive after commit so returned models retain values
    return Session(engine, expire_on_commit=False)


@contextmanager
def session_scope(engine: Engine):
    session = get_session(engine)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
