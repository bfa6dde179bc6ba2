from __future__ import annotations

import logging
import math
from collections import defaultdict
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

from uptower.db.repo import Heartbeat, Repository, ensure_utc

logger = logging.getLogger(__name__)


def _round_half_up(value: float) -> int:
	return int(math.floor(value + 0.5))


def hour_bucket(reference_time: datetime) -> datetime:
	"""Начало часа, предшествующего reference_time (floor до часа минус один час)."""
	ref = ensure_utc(reference_time)
	return ref.replace(minute=0, second=0, microsecond=0) - timedelta(hours=1)


@dataclass(frozen=True)
class HourlyStats:
	avg_response_time: Optional[int]
	min_response_time: Optional[int]
	max_response_time: Optional[int]
	uptime_percentage: int
	check_count: int
	up_count: int
	down_count: int


def compute_hourly_stats(results: Iterable[Heartbeat]) -> Optional[HourlyStats]:
	"""Свернуть результаты одного монитора за час. None, если результатов нет."""
	results = list(results)
	if not results:
		return None
	check_count = len(results)
	up_count = sum(1 for r in results if r.status)
	times = [r.response_time_ms for r in results if r.response_time_ms is not None]
	return HourlyStats(
		avg_response_time=_round_half_up(sum(times) / len(times)) if times else None,
		min_response_time=min(times) if times else None,
		max_response_time=max(times) if times else None,
		uptime_percentage=_round_half_up(up_count / check_count * 100),
		check_count=check_count,
		up_count=up_count,
		down_count=check_count - up_count,
	)


def aggregate_hour(repo: Repository, monitor_ids: Iterable[int], reference_time: datetime) -> dict[int, HourlyStats]:
	"""Посчитать и записать (upsert) статистику за прошедший час; повторный запуск перезаписывает."""
	ids = list(monitor_ids)
	if not ids:
		return {}
	start = hour_bucket(reference_time)
	end = start + timedelta(hours=1)

	grouped: dict[int, list[Heartbeat]] = defaultdict(list)
	for r in repo.results_between(ids, start, end):
		grouped[r.monitor_id].append(r)

	out: dict[int, HourlyStats] = {}
	for monitor_id, rows in grouped.items():
		stats = compute_hourly_stats(rows)
		if stats is None:
			continue
		repo.upsert_hourly_stat(monitor_id, start, asdict(stats))
		out[monitor_id] = stats
	logger.debug("hourly stats for %s: %s monitors", start.isoformat(), len(out))
	return out
