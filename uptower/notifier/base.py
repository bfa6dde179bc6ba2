from __future__ import annotations

import abc

import aiohttp

from .types import TransitionEvent


class Notifier(abc.ABC):
	channel_type: str = "unknown"

	@abc.abstractmethod
	async def send(self, event: TransitionEvent) -> None:
		...


class HttpNotifier(Notifier):
	"""Общая часть каналов, отправляющих JSON POST-запросом; не-2xx ответ считается ошибкой."""

	def __init__(self, *, connect_timeout_s: float = 3.0, read_timeout_s: float = 7.0) -> None:
		self._timeout = aiohttp.ClientTimeout(connect=connect_timeout_s, total=connect_timeout_s + read_timeout_s)

	async def _post_json(self, url: str, payload: dict, *, headers: dict | None = None) -> None:
		async with aiohttp.ClientSession(timeout=self._timeout) as s:
			async with s.post(url, json=payload, headers=headers) as resp:
				resp.raise_for_status()
