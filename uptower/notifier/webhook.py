from __future__ import annotations

from .base import HttpNotifier
from .config import WebhookConfig
from .types import TransitionEvent


class WebhookNotifier(HttpNotifier):
	"""Простой отправитель уведомлений через HTTP Webhook."""
	channel_type = "webhook"

	def __init__(self, config: WebhookConfig, **kwargs) -> None:
		super().__init__(**kwargs)
		self._url = config.url

	@staticmethod
	def build_payload(event: TransitionEvent) -> dict:
		return {
			"monitor": event.monitor_name,
			"status": event.status_word,
			"message": event.message,
			"responseTime": event.response_time_ms,
			"timestamp": event.ts.isoformat(),
		}

	async def send(self, event: TransitionEvent) -> None:
		"""Отправить событие в виде JSON на указанный URL."""
		await self._post_json(self._url, self.build_payload(event))
