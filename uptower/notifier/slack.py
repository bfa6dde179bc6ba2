from __future__ import annotations

from .base import HttpNotifier
from .config import SlackConfig
from .types import TransitionEvent


class SlackNotifier(HttpNotifier):
	channel_type = "slack"

	def __init__(self, config: SlackConfig, **kwargs) -> None:
		super().__init__(**kwargs)
		self._url = config.webhook_url

	@staticmethod
	def build_payload(event: TransitionEvent) -> dict:
		emoji = ":white_check_mark:" if event.status else ":red_circle:"
		blocks: list[dict] = [
			{"type": "section", "text": {"type": "mrkdwn", "text": f"{emoji} *[{event.status_text}] {event.monitor_name}*"}},
			{"type": "section", "text": {"type": "mrkdwn", "text": event.message}},
		]
		context = []
		if event.response_time_ms:
			context.append({"type": "mrkdwn", "text": f"*Response Time:* {event.response_time_ms}ms"})
		if event.url:
			context.append({"type": "mrkdwn", "text": f"*URL:* {event.url}"})
		if context:
			blocks.append({"type": "context", "elements": context})
		return {"blocks": blocks}

	async def send(self, event: TransitionEvent) -> None:
		await self._post_json(self._url, self.build_payload(event))
