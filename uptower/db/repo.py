from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Mapping, Optional

from sqlalchemy import and_, case, func
from sqlalchemy.orm import sessionmaker

from uptower.checker.types import CheckResult as CheckOutcome
from .models import (
    SessionLocal,
    Monitor,
    CheckResult,
    Incident,
    HourlyStat,
    NotificationChannel,
    User,
    monitor_notification,
    ERR_MAX_LEN,
)

HOURLY_STAT_FIELDS = (
    "avg_response_time",
    "min_response_time",
    "max_response_time",
    "uptime_percentage",
    "check_count",
    "up_count",
    "down_count",
)


def ensure_utc(ts: Optional[datetime]) -> Optional[datetime]:
    """Гарантировать, что datetime имеет таймзону UTC (SQLite возвращает naive)."""
    if ts is None:
        return None
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    elif ts.tzinfo != timezone.utc:
        return ts.astimezone(timezone.utc)
    else:
        return ts


@dataclass(frozen=True)
class Heartbeat:
    """Сохранённый результат проверки (только чтение)."""
    id: int
    monitor_id: int
    ts: datetime
    status: bool
    status_code: Optional[int]
    response_time_ms: Optional[int]
    message: Optional[str]

    @classmethod
    def from_row(cls, row: CheckResult) -> "Heartbeat":
        return cls(
            id=row.id,
            monitor_id=row.monitor_id,
            ts=ensure_utc(row.ts),
            status=bool(row.status),
            status_code=row.status_code,
            response_time_ms=row.response_time_ms,
            message=row.message,
        )


def _detach_incident(incident: Optional[Incident]) -> Optional[Incident]:
    if incident is not None:
        incident.started_at = ensure_utc(incident.started_at)
        incident.resolved_at = ensure_utc(incident.resolved_at)
    return incident


class Repository:
    """Хранилище движка проверок. Каждая операция открывает свою короткую сессию."""

    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self._session_factory = session_factory

    # --- мониторы и каналы ---

    def list_active_monitors(self) -> list[Monitor]:
        with self._session_factory() as session:
            return session.query(Monitor).filter(Monitor.active.is_(True)).order_by(Monitor.id).all()

    def get_monitor(self, monitor_id: int) -> Monitor | None:
        with self._session_factory() as session:
            return session.query(Monitor).filter(Monitor.id == monitor_id).first()

    def channels_for_monitor(self, monitor_id: int) -> list[NotificationChannel]:
        """Активные каналы уведомлений, привязанные к монитору."""
        with self._session_factory() as session:
            return (
                session.query(NotificationChannel)
                .join(monitor_notification, monitor_notification.c.channel_id == NotificationChannel.id)
                .filter(
                    monitor_notification.c.monitor_id == monitor_id,
                    NotificationChannel.active.is_(True),
                )
                .order_by(NotificationChannel.id)
                .all()
            )

    def get_channel(self, channel_id: int) -> NotificationChannel | None:
        with self._session_factory() as session:
            return session.query(NotificationChannel).filter(NotificationChannel.id == channel_id).first()

    def get_user_email(self, user_id: int) -> str | None:
        with self._session_factory() as session:
            return session.query(User.email).filter(User.id == user_id).scalar()

    # --- результаты проверок ---

    def latest_results_for(self, monitor_ids: Iterable[int]) -> dict[int, Heartbeat]:
        """Последний результат по каждому монитору одним запросом (без N+1)."""
        ids = list(monitor_ids)
        if not ids:
            return {}
        with self._session_factory() as session:
            latest = (
                session.query(CheckResult.monitor_id, func.max(CheckResult.ts).label("max_ts"))
                .filter(CheckResult.monitor_id.in_(ids))
                .group_by(CheckResult.monitor_id)
                .subquery()
            )
            rows = (
                session.query(CheckResult)
                .join(latest, and_(CheckResult.monitor_id == latest.c.monitor_id, CheckResult.ts == latest.c.max_ts))
                .order_by(CheckResult.id.asc())
                .all()
            )
        # при совпадении ts побеждает строка с большим id
        return {r.monitor_id: Heartbeat.from_row(r) for r in rows}

    def insert_result(self, monitor_id: int, result: CheckOutcome, ts: datetime) -> Heartbeat:
        """Добавить результат проверки монитора."""
        message = result.message
        with self._session_factory() as session:
            row = CheckResult(
                monitor_id=monitor_id,
                ts=ensure_utc(ts),
                status=result.status,
                status_code=result.status_code,
                response_time_ms=result.response_time_ms,
                message=message[:ERR_MAX_LEN] if message else message,
            )
            session.add(row)
            session.commit()
            return Heartbeat.from_row(row)

    def results_between(self, monitor_ids: Iterable[int], start: datetime, end: datetime) -> list[Heartbeat]:
        """Результаты в полуинтервале [start, end) для набора мониторов."""
        ids = list(monitor_ids)
        if not ids:
            return []
        with self._session_factory() as session:
            rows = (
                session.query(CheckResult)
                .filter(
                    CheckResult.monitor_id.in_(ids),
                    CheckResult.ts >= ensure_utc(start),
                    CheckResult.ts < ensure_utc(end),
                )
                .order_by(CheckResult.ts.asc())
                .all()
            )
            return [Heartbeat.from_row(r) for r in rows]

    def get_history(self, monitor_id: int, limit: int = 100) -> list[Heartbeat]:
        with self._session_factory() as session:
            rows = (
                session.query(CheckResult)
                .filter(CheckResult.monitor_id == monitor_id)
                .order_by(CheckResult.ts.desc(), CheckResult.id.desc())
                .limit(limit)
                .all()
            )
            return [Heartbeat.from_row(r) for r in rows]

    def delete_results_older_than(self, cutoff: datetime) -> int:
        """Удалить строки check_result старше cutoff. Возвращает количество удалённых."""
        with self._session_factory() as session:
            count = (
                session.query(CheckResult)
                .filter(CheckResult.ts < ensure_utc(cutoff))
                .delete(synchronize_session=False)
            )
            session.commit()
            return int(count or 0)

    def uptime_stats(self, monitor_id: int, now: datetime, windows: Mapping[str, timedelta]) -> dict[str, dict[str, Any]]:
        """Аптайм (0..100, два знака) и средняя задержка за несколько окон времени."""
        end_time = ensure_utc(now)
        out: dict[str, dict[str, Any]] = {}
        with self._session_factory() as session:
            for name, span in windows.items():
                total, up, avg = (
                    session.query(
                        func.count(CheckResult.id),
                        func.sum(case((CheckResult.status.is_(True), 1), else_=0)),
                        func.avg(CheckResult.response_time_ms),
                    )
                    .filter(
                        CheckResult.monitor_id == monitor_id,
                        CheckResult.ts >= end_time - span,
                        CheckResult.ts <= end_time,
                    )
                    .one()
                )
                total = int(total or 0)
                if total == 0:
                    out[name] = {"uptime": 0.0, "avg_response_time": 0, "total_checks": 0}
                    continue
                out[name] = {
                    "uptime": round(100.0 * int(up or 0) / total, 2),
                    "avg_response_time": int(round(float(avg))) if avg is not None else 0,
                    "total_checks": total,
                }
        return out

    # --- инциденты ---

    def find_open_incident(self, monitor_id: int) -> Incident | None:
        """Вернуть текущий открытый инцидент монитора (самый поздний по started_at)."""
        with self._session_factory() as session:
            incident = (
                session.query(Incident)
                .filter(Incident.monitor_id == monitor_id, Incident.resolved_at.is_(None))
                .order_by(Incident.started_at.desc(), Incident.id.desc())
                .first()
            )
        return _detach_incident(incident)

    def insert_incident(self, monitor_id: int, started_at: datetime, cause: str) -> Incident:
        """Открыть новый инцидент."""
        with self._session_factory() as session:
            incident = Incident(
                monitor_id=monitor_id,
                started_at=ensure_utc(started_at),
                cause=(cause or "")[:ERR_MAX_LEN],
            )
            session.add(incident)
            session.commit()
        return _detach_incident(incident)

    def close_incident(self, incident_id: int, resolved_at: datetime, duration_s: int) -> None:
        """Закрыть инцидент: установить resolved_at и длительность."""
        with self._session_factory() as session:
            incident = session.query(Incident).filter(Incident.id == incident_id).first()
            if incident is None:
                return
            incident.resolved_at = ensure_utc(resolved_at)
            incident.duration_s = int(duration_s)
            session.commit()

    def list_incidents(self, monitor_id: int, limit: int = 10) -> list[Incident]:
        with self._session_factory() as session:
            rows = (
                session.query(Incident)
                .filter(Incident.monitor_id == monitor_id)
                .order_by(Incident.started_at.desc(), Incident.id.desc())
                .limit(limit)
                .all()
            )
        return [_detach_incident(r) for r in rows]

    # --- почасовая статистика ---

    def upsert_hourly_stat(self, monitor_id: int, hour: datetime, values: Mapping[str, Any]) -> None:
        """Записать статистику за час; повторный вызов перезаписывает строку (monitor_id, hour)."""
        data = {k: values[k] for k in HOURLY_STAT_FIELDS}
        hour = ensure_utc(hour)
        with self._session_factory() as session:
            dialect = session.get_bind().dialect.name
            if dialect == "postgresql":
                from sqlalchemy.dialects.postgresql import insert
            elif dialect == "sqlite":
                from sqlalchemy.dialects.sqlite import insert
            else:
                insert = None
            if insert is not None:
                stmt = insert(HourlyStat).values(monitor_id=monitor_id, hour=hour, **data)
                stmt = stmt.on_conflict_do_update(index_elements=["monitor_id", "hour"], set_=data)
                session.execute(stmt)
            else:
                row = (
                    session.query(HourlyStat)
                    .filter(HourlyStat.monitor_id == monitor_id, HourlyStat.hour == hour)
                    .with_for_update()
                    .first()
                )
                if row is None:
                    session.add(HourlyStat(monitor_id=monitor_id, hour=hour, **data))
                else:
                    for k, v in data.items():
                        setattr(row, k, v)
            session.commit()

    def get_hourly_stats(self, monitor_id: int, since: datetime) -> list[HourlyStat]:
        with self._session_factory() as session:
            rows = (
                session.query(HourlyStat)
                .filter(HourlyStat.monitor_id == monitor_id, HourlyStat.hour >= ensure_utc(since))
                .order_by(HourlyStat.hour.asc())
                .all()
            )
        for r in rows:
            r.hour = ensure_utc(r.hour)
        return rows
