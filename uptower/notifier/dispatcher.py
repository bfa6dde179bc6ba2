from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Iterable, Optional

from uptower.config import Settings
from uptower.metrics import record_notification
from .base import Notifier
from .factory import build_notifier
from .log import LogNotifier
from .types import TransitionEvent

logger = logging.getLogger(__name__)

NotifierBuilder = Callable[..., Notifier]


class NotificationDispatcher:
	"""Рассылка события перехода по каналам; сбой одного канала не влияет на остальные."""

	def __init__(
		self,
		settings: Settings,
		*,
		owner_email_lookup: Optional[Callable[[int], Optional[str]]] = None,
		builder: NotifierBuilder = build_notifier,
	) -> None:
		self._settings = settings
		self._owner_email_lookup = owner_email_lookup
		self._builder = builder
		self._log = LogNotifier()

	def _owner_email(self, channel: Any) -> Optional[str]:
		if channel.type != "email" or self._owner_email_lookup is None:
			return None
		return self._owner_email_lookup(channel.user_id)

	async def dispatch(self, channel: Any, event: TransitionEvent) -> bool:
		"""Отправить событие в один канал. Никогда не бросает: ошибка логируется, возвращается False."""
		try:
			notifier = self._builder(channel, self._settings, owner_email=self._owner_email(channel))
			await notifier.send(event)
		except Exception:
			logger.exception(
				"notification channel %s (%s) failed for monitor %s", channel.id, channel.type, event.monitor_id,
				extra={"monitor_id": event.monitor_id, "channel_id": channel.id},
			)
			record_notification(channel.type, ok=False)
			return False
		record_notification(channel.type, ok=True)
		return True

	async def fan_out(self, channels: Iterable[Any], event: TransitionEvent) -> dict[int, bool]:
		"""Параллельная отправка во все каналы; результат - {channel_id: успех}."""
		await self._log.send(event)
		channels = list(channels)
		if not channels:
			return {}
		results = await asyncio.gather(*(self.dispatch(ch, event) for ch in channels))
		return {ch.id: ok for ch, ok in zip(channels, results)}

	async def send_test(self, channel: Any) -> bool:
		"""Тестовое уведомление в канал (кнопка "проверить канал")."""
		event = TransitionEvent(
			monitor_id=None,
			monitor_name="Test Monitor",
			status=True,
			message="This is a test notification from Uptower",
			response_time_ms=123,
		)
		return await self.dispatch(channel, event)
