from __future__ import annotations

import logging
from datetime import datetime, timedelta

from uptower.db.repo import Repository, ensure_utc

logger = logging.getLogger(__name__)

RETENTION_DAYS = 30


def sweep_results(repo: Repository, now: datetime, days: int = RETENTION_DAYS) -> int:
	"""Удалить результаты проверок старше now - days. Возвращает количество удалённых строк."""
	cutoff = ensure_utc(now) - timedelta(days=days)
	deleted = repo.delete_results_older_than(cutoff)
	if deleted:
		logger.info("retention: deleted %s check results older than %s", deleted, cutoff.isoformat())
	return deleted
