"""
Persistent namespace registry on SQLAlchemy.

SQLite by default; namespaces survive process restarts, which is what a
platform cache store gives a background worker.
"""
import json
import logging
import threading
from contextlib import contextmanager
from datetime import timezone
from typing import Iterator, List, Optional

from sqlalchemy import (
    Column, DateTime, ForeignKey, Integer, LargeBinary, String, Text, UniqueConstraint,
    create_engine,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from ..exceptions import StorageError
from .core import CacheRecord
from .store import NamespaceRegistry

logger = logging.getLogger("engine.sql_store")

Base = declarative_base()


class NamespaceRow(Base):
    """One named cache namespace."""
    __tablename__ = "namespaces"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, unique=True, nullable=False, index=True)

    def __repr__(self):
        return f"<NamespaceRow(id={self.id}, name='{self.name}')>"


class RecordRow(Base):
    """
    One cached response. Replacing a key deletes the old row and inserts
    a new one, so row id order is insertion order.
    """
    __tablename__ = "cache_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    namespace_id = Column(Integer, ForeignKey("namespaces.id"), nullable=False, index=True)
    key = Column(String, nullable=False)
    status = Column(Integer, nullable=False)
    status_text = Column(String, nullable=False, default="")
    headers = Column(Text, nullable=False)  # JSON list of [name, value] pairs
    body = Column(LargeBinary, nullable=False)
    stored_at = Column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("namespace_id", "key", name="uix_namespace_key"),
    )

    def to_record(self) -> CacheRecord:
        return CacheRecord(
            status=self.status,
            headers=tuple((name, value) for name, value in json.loads(self.headers)),
            body=self.body,
            status_text=self.status_text,
            stored_at=self.stored_at.replace(tzinfo=timezone.utc),
        )


class SqlNamespaceRegistry(NamespaceRegistry):
    """
    NamespaceRegistry persisted through SQLAlchemy.

    Every SQLAlchemyError is re-raised as StorageError.
    """

    def __init__(self, database_url: str = "sqlite:///./engine_cache.db", echo: bool = False):
        connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
        self.database_url = database_url
        self._engine = create_engine(database_url, connect_args=connect_args, echo=echo)
        self._sessions = sessionmaker(autocommit=False, autoflush=False, bind=self._engine)
        # SQLite allows one writer; serialize writes from revalidation threads
        self._write_lock = threading.Lock()
        Base.metadata.create_all(bind=self._engine)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self._sessions()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.warning(f"Storage operation failed: {e}")
            raise StorageError(str(e)) from e
        finally:
            session.close()

    def _namespace(self, session: Session, name: str) -> Optional[NamespaceRow]:
        return session.query(NamespaceRow).filter(NamespaceRow.name == name).one_or_none()

    def create(self, name: str) -> None:
        with self._write_lock, self._session() as session:
            if self._namespace(session, name) is None:
                session.add(NamespaceRow(name=name))
                logger.debug(f"Created namespace: {name}")

    def names(self) -> List[str]:
        with self._session() as session:
            rows = session.query(NamespaceRow.name).order_by(NamespaceRow.id).all()
            return [row.name for row in rows]

    def delete_namespace(self, name: str) -> bool:
        with self._write_lock, self._session() as session:
            namespace = self._namespace(session, name)
            if namespace is None:
                return False
            session.query(RecordRow).filter(RecordRow.namespace_id == namespace.id).delete()
            session.delete(namespace)
            logger.info(f"Deleted namespace: {name}")
            return True

    def get(self, name: str, key: str) -> Optional[CacheRecord]:
        with self._session() as session:
            row = (
                session.query(RecordRow)
                .join(NamespaceRow, RecordRow.namespace_id == NamespaceRow.id)
                .filter(NamespaceRow.name == name, RecordRow.key == key)
                .one_or_none()
            )
            return row.to_record() if row is not None else None

    def put(self, name: str, key: str, record: CacheRecord) -> None:
        with self._write_lock, self._session() as session:
            namespace = self._namespace(session, name)
            if namespace is None:
                namespace = NamespaceRow(name=name)
                session.add(namespace)
                session.flush()
            session.query(RecordRow).filter(
                RecordRow.namespace_id == namespace.id, RecordRow.key == key
            ).delete()
            session.add(RecordRow(
                namespace_id=namespace.id,
                key=key,
                status=record.status,
                status_text=record.status_text,
                headers=json.dumps([list(pair) for pair in record.headers]),
                body=record.body,
                stored_at=record.stored_at.astimezone(timezone.utc).replace(tzinfo=None),
            ))

    def delete(self, name: str, key: str) -> bool:
        with self._write_lock, self._session() as session:
            namespace = self._namespace(session, name)
            if namespace is None:
                return False
            deleted = session.query(RecordRow).filter(
                RecordRow.namespace_id == namespace.id, RecordRow.key == key
            ).delete()
            return deleted > 0

    def keys(self, name: str) -> List[str]:
        with self._session() as session:
            rows = (
                session.query(RecordRow.key)
                .join(NamespaceRow, RecordRow.namespace_id == NamespaceRow.id)
                .filter(NamespaceRow.name == name)
                .order_by(RecordRow.id)
                .all()
            )
            return [row.key for row in rows]

    def dispose(self) -> None:
        self._engine.dispose()
