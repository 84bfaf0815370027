"""SQLAlchemy-backed key-value store for the settings snapshot."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import Column, LargeBinary, String, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


class Setting(Base):
    __tablename__ = "settings"

    key = Column(String, primary_key=True, index=True)
    value = Column(LargeBinary, nullable=False)


def make_engine(url: str):
    return create_engine(url, connect_args={"check_same_thread": False} if url.startswith("sqlite") else {})


def init_db(engine) -> None:
    Base.metadata.create_all(bind=engine)


class SqlStore:
    """One row per snapshot key in the ``settings`` table."""

    def __init__(self, url: str = "sqlite:///budget_coach.db", engine=None):
        self.engine = engine if engine is not None else make_engine(url)
        init_db(self.engine)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def get(self, key: str) -> Optional[bytes]:
        db = self.SessionLocal()
        try:
            row = db.get(Setting, key)
            return bytes(row.value) if row is not None else None
        finally:
            db.close()

    def set(self, key: str, value: bytes) -> None:
        db = self.SessionLocal()
        try:
            row = db.get(Setting, key)
            if row is None:
                db.add(Setting(key=key, value=value))
            else:
                row.value = value
            db.commit()
        finally:
            db.close()
