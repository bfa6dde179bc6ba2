from __future__ import annotations

from typing import Optional

from uptower.config import RESEND_API_URL
from .base import HttpNotifier
from .config import ChannelConfigError, EmailConfig
from .types import TransitionEvent


class EmailNotifier(HttpNotifier):
	"""Письмо владельцу канала через транзакционный API Resend."""
	channel_type = "email"

	def __init__(
		self,
		config: EmailConfig,
		*,
		owner_email: Optional[str],
		api_key: Optional[str],
		sender: Optional[str],
		api_url: str = RESEND_API_URL,
		**kwargs,
	) -> None:
		super().__init__(**kwargs)
		if not api_key or not sender:
			raise ChannelConfigError("Email sender and provider API key must be configured")
		recipient = config.to or owner_email
		if not recipient:
			raise ChannelConfigError("Channel owner has no registered email")
		self._recipient = recipient
		self._api_key = api_key
		self._sender = sender
		self._api_url = api_url

	@staticmethod
	def build_subject(event: TransitionEvent) -> str:
		return f"[{event.status_text}] {event.monitor_name}"

	@staticmethod
	def build_text(event: TransitionEvent) -> str:
		lines = [
			f"Monitor: {event.monitor_name}",
			f"Status: {event.status_text}",
			f"Message: {event.message}",
		]
		if event.response_time_ms:
			lines.append(f"Response Time: {event.response_time_ms}ms")
		if event.url:
			lines.append(f"URL: {event.url}")
		lines.append(f"Time: {event.ts.isoformat()}")
		return "\n".join(lines)

	async def send(self, event: TransitionEvent) -> None:
		payload = {
			"from": self._sender,
			"to": [self._recipient],
			"subject": self.build_subject(event),
			"text": self.build_text(event),
		}
		await self._post_json(self._api_url, payload, headers={"Authorization": f"Bearer {self._api_key}"})
