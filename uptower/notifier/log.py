from __future__ import annotations

import logging

from .base import Notifier
from .types import TransitionEvent


class LogNotifier(Notifier):
	"""Журнал переходов: каждое событие фиксируется в логе независимо от внешних каналов."""
	channel_type = "log"

	def __init__(self) -> None:
		self._logger = logging.getLogger("notifier.log")

	async def send(self, event: TransitionEvent) -> None:
		lvl = logging.INFO if event.status else logging.WARNING
		self._logger.log(
			lvl,
			"monitor=%s status=%s msg=%s monitor_id=%s ts=%s",
			event.monitor_name,
			event.status_word,
			event.message,
			event.monitor_id,
			event.ts.isoformat(),
		)
