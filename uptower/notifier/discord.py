from __future__ import annotations

from .base import HttpNotifier
from .config import DiscordConfig
from .types import TransitionEvent

COLOR_UP = 0x00FF00
COLOR_DOWN = 0xFF0000


class DiscordNotifier(HttpNotifier):
	channel_type = "discord"

	def __init__(self, config: DiscordConfig, **kwargs) -> None:
		super().__init__(**kwargs)
		self._url = config.webhook_url

	@staticmethod
	def build_payload(event: TransitionEvent) -> dict:
		fields = []
		if event.response_time_ms:
			fields.append({"name": "Response Time", "value": f"{event.response_time_ms}ms", "inline": True})
		if event.url:
			fields.append({"name": "URL", "value": event.url, "inline": True})
		return {
			"embeds": [{
				"title": f"[{event.status_text}] {event.monitor_name}",
				"description": event.message,
				"color": COLOR_UP if event.status else COLOR_DOWN,
				"fields": fields,
				"timestamp": event.ts.isoformat(),
				"footer": {"text": "Uptower"},
			}],
		}

	async def send(self, event: TransitionEvent) -> None:
		await self._post_json(self._url, self.build_payload(event))
