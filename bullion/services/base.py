"""Session plumbing shared by the ledger services."""
from __future__ import annotations

import logging
from typing import Callable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from bullion.db import SessionLocal, engine, init_db
from bullion.ledger_utils import IdGenerator

log = logging.getLogger(__name__)

_SCHEMA_READY = False


def _ensure_schema():
    global _SCHEMA_READY
    if not _SCHEMA_READY:
        init_db(engine)
        _SCHEMA_READY = True


class ServiceBase:
    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        ids: Optional[IdGenerator] = None,
    ):
        if session_factory is SessionLocal:
            _ensure_schema()
        self._session_factory = session_factory
        self._ids = ids or IdGenerator()

    def _session(self) -> Session:
        return self._session_factory()

    def _unique_id(self, session: Session, model, make: Callable[[], str], attempts: int = 50) -> str:
        """Draw ids until one is unused; pending rows must already be flushed."""
        for _ in range(attempts):
            candidate = make()
            taken = session.execute(select(model.id).where(model.id == candidate).limit(1)).first()
            if taken is None:
                return candidate
            log.debug("Id %s already taken for %s, drawing again", candidate, model.__tablename__)
        raise RuntimeError(f"Could not allocate a unique id for {model.__tablename__}")
