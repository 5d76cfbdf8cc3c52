from contextlib import AbstractContextManager
from typing import Optional

from sqlalchemy.orm import Session

from airsense_server.adapters.db.repository import SqlDeviceRepository, SqlReadingRepository
from airsense_server.adapters.db.session import SessionLocal


class SqlAlchemyUoW(AbstractContextManager):
    """
    One database transaction per ``with`` block.

    With a caller-supplied session the caller owns commit and close; the
    block then only groups repository calls.
    """

    def __init__(self, session: Optional[Session] = None):
        self._owns_session = session is None
        self.session: Session = session if session is not None else SessionLocal()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, *_):
        if not self._owns_session:
            return
        try:
            if exc_type:
                self.session.rollback()
            else:
                self.session.commit()
        finally:
            self.session.close()

    def reading_repo(self) -> SqlReadingRepository:
        return SqlReadingRepository(self.session)

    def device_repo(self) -> SqlDeviceRepository:
        return SqlDeviceRepository(self.session)
