from __future__ import annotations

from html import escape

from .base import HttpNotifier
from .config import TelegramConfig
from .types import TransitionEvent

TELEGRAM_API = "https://api.telegram.org"
# ограничение длины сообщения Telegram
MAX_MESSAGE_LEN = 4096


class TelegramNotifier(HttpNotifier):
	channel_type = "telegram"

	def __init__(self, config: TelegramConfig, *, api_base: str = TELEGRAM_API, **kwargs) -> None:
		super().__init__(**kwargs)
		self._bot_token = config.bot_token
		self._chat_id = config.chat_id
		self._api_base = api_base.rstrip("/")

	@staticmethod
	def _compose(event: TransitionEvent, message: str) -> str:
		emoji = "✅" if event.status else "🔴"
		lines = [
			f"{emoji} <b>[{event.status_text}] {escape(event.monitor_name)}</b>",
			"",
			escape(message),
		]
		if event.response_time_ms:
			lines.append(f"Response Time: {event.response_time_ms}ms")
		if event.url:
			lines.append(f"URL: {escape(event.url)}")
		return "\n".join(lines)

	@classmethod
	def build_text(cls, event: TransitionEvent) -> str:
		"""HTML-текст сообщения не длиннее лимита Telegram.

		Обрезается исходное сообщение до экранирования, поэтому HTML-сущности не рвутся.
		"""
		message = event.message
		text = cls._compose(event, message)
		while len(text) > MAX_MESSAGE_LEN and message:
			message = message[:max(0, len(message) - (len(text) - MAX_MESSAGE_LEN))]
			text = cls._compose(event, message)
		if len(text) > MAX_MESSAGE_LEN:
			# не хватило даже пустого сообщения: режем до начала последней сущности
			text = text[:MAX_MESSAGE_LEN]
			amp = text.rfind("&")
			if amp != -1 and ";" not in text[amp:]:
				text = text[:amp]
		return text

	async def send(self, event: TransitionEvent) -> None:
		url = f"{self._api_base}/bot{self._bot_token}/sendMessage"
		payload = {"chat_id": self._chat_id, "text": self.build_text(event), "parse_mode": "HTML"}
		await self._post_json(url, payload)
