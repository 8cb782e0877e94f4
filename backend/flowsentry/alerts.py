"""Append-only alert log backed by the SQL database."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .database import async_session_factory
from .db_models import AlertRecord
from .models import Alert, AlertSeverity, AlertType

log = logging.getLogger(__name__)


def _record_to_alert(record: AlertRecord) -> Alert:
    return Alert(
        id=record.id,
        type=AlertType(record.type),
        severity=AlertSeverity(record.severity),
        from_id=record.from_business_id,
        to_id=record.to_business_id,
        amount=record.amount,
        timestamp=record.timestamp,
    )


class AlertRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = async_session_factory) -> None:
        self.session_factory = session_factory

    async def insert_alert(self, alert: Alert) -> int:
        """Insert one alert and return its row id."""
        record = AlertRecord(
            type=alert.type.value,
            severity=alert.severity.value,
            from_business_id=alert.from_id,
            to_business_id=alert.to_id,
            amount=alert.amount,
            timestamp=alert.timestamp,
        )
        async with self.session_factory() as session:
            session.add(record)
            await session.commit()
            log.debug("Stored alert %s (%s)", record.id, record.type)
            return record.id

    async def find_recent_alerts(self, limit: int = 50) -> list[Alert]:
        """Most recent alerts first."""
        async with self.session_factory() as session:
            result = await session.execute(
                select(AlertRecord).order_by(AlertRecord.id.desc()).limit(limit)
            )
            return [_record_to_alert(r) for r in result.scalars().all()]


alert_repository = AlertRepository()
