from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Iterable, Mapping, Optional

from uptower.db.repo import Heartbeat, ensure_utc

DEFAULT_INTERVAL_S = 60


def in_maintenance(monitor: Any, now: datetime) -> bool:
	"""Монитор в окне обслуживания [start, end), если заданы обе границы."""
	start = ensure_utc(monitor.maintenance_start)
	end = ensure_utc(monitor.maintenance_end)
	if start is None or end is None:
		return False
	return start <= ensure_utc(now) < end


def is_due(monitor: Any, latest: Optional[Heartbeat], now: datetime) -> bool:
	if latest is None:
		return True
	interval = timedelta(seconds=monitor.interval_s or DEFAULT_INTERVAL_S)
	return ensure_utc(now) - latest.ts >= interval


def select_due(monitors: Iterable[Any], latest_by_monitor: Mapping[int, Heartbeat], now: datetime) -> list[Any]:
	"""Мониторы, которые нужно проверить в этом тике.

	latest_by_monitor собирается заранее одним запросом (Repository.latest_results_for),
	здесь к хранилищу не обращаемся.
	"""
	now = ensure_utc(now)
	due = []
	for monitor in monitors:
		if monitor.active is False:
			continue
		if in_maintenance(monitor, now):
			continue
		if is_due(monitor, latest_by_monitor.get(monitor.id), now):
			due.append(monitor)
	return due
