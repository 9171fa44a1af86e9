"""System notifications: low-stock warnings and event confirmations."""
from __future__ import annotations

import logging
from typing import Callable, List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from bullion.core.config import settings
from bullion.db import SessionLocal
from bullion.ledger_utils import IdGenerator, _now_iso
from bullion.models import Item, ItemStatus, Notification, NotificationType, Product
from bullion.services.base import ServiceBase
from bullion.services.records import NotificationRecord, notification_record

log = logging.getLogger(__name__)


class NotificationService(ServiceBase):
    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        ids: Optional[IdGenerator] = None,
        low_stock_threshold: Optional[int] = None,
    ):
        super().__init__(session_factory, ids)
        self.low_stock_threshold = (
            settings.LOW_STOCK_THRESHOLD if low_stock_threshold is None else int(low_stock_threshold)
        )

    # ------------------------------------------------------------------
    # In-session helpers; the caller commits.
    def add(self, session: Session, kind: NotificationType, message: str) -> Notification:
        notif = Notification(
            id=self._unique_id(session, Notification, self._ids.notification_id),
            type=NotificationType(kind).value,
            message=message,
            date=_now_iso(),
            read=False,
        )
        session.add(notif)
        session.flush()
        return notif

    def check_low_stock(self, session: Session) -> List[Notification]:
        """Warn for every product whose in-stock count is at or below the threshold."""
        counts = dict(
            session.execute(
                select(Item.product_id, func.count(Item.seq))
                .where(Item.status == ItemStatus.IN_STOCK.value)
                .group_by(Item.product_id)
            ).all()
        )
        emitted = []
        for product in session.execute(select(Product).order_by(Product.seq)).scalars():
            count = counts.get(product.id, 0)
            if count <= self.low_stock_threshold:
                log.warning("Low stock: %s has %d in stock", product.name, count)
                emitted.append(
                    self.add(
                        session,
                        NotificationType.WARNING,
                        f"Low stock: {product.name} is down to {count} in stock.",
                    )
                )
        return emitted

    # ------------------------------------------------------------------
    # Public API
    def notify(self, kind: NotificationType, message: str) -> NotificationRecord:
        session = self._session()
        try:
            notif = self.add(session, kind, message)
            session.commit()
            return notification_record(notif)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def list_notifications(self) -> List[NotificationRecord]:
        """Newest first."""
        session = self._session()
        try:
            rows = session.execute(select(Notification).order_by(Notification.seq.desc())).scalars()
            return [notification_record(n) for n in rows]
        finally:
            session.close()

    def unread_count(self) -> int:
        session = self._session()
        try:
            return session.execute(
                select(func.count(Notification.seq)).where(Notification.read.is_(False))
            ).scalar_one()
        finally:
            session.close()

    def mark_all_read(self) -> int:
        session = self._session()
        try:
            changed = session.execute(
                update(Notification).where(Notification.read.is_(False)).values(read=True)
            ).rowcount or 0
            session.commit()
            return changed
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def clear_all(self) -> int:
        session = self._session()
        try:
            deleted = session.execute(delete(Notification)).rowcount or 0
            session.commit()
            log.debug("Cleared %d notifications", deleted)
            return deleted
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
