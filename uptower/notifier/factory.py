from __future__ import annotations

from typing import Any, Optional

from uptower.config import Settings
from .base import Notifier
from .config import parse_channel_config
from .discord import DiscordNotifier
from .mail import EmailNotifier
from .slack import SlackNotifier
from .telegram import TelegramNotifier
from .webhook import WebhookNotifier


def build_notifier(channel: Any, settings: Settings, *, owner_email: Optional[str] = None) -> Notifier:
	"""Построить отправителя для канала по его типу; ошибки конфигурации - ChannelConfigError."""
	config = parse_channel_config(channel.type, channel.config)
	timeouts = {"connect_timeout_s": min(3.0, settings.notify_timeout_s), "read_timeout_s": settings.notify_timeout_s}
	if channel.type == "webhook":
		return WebhookNotifier(config, **timeouts)
	if channel.type == "discord":
		return DiscordNotifier(config, **timeouts)
	if channel.type == "slack":
		return SlackNotifier(config, **timeouts)
	if channel.type == "telegram":
		return TelegramNotifier(config, **timeouts)
	return EmailNotifier(
		config,
		owner_email=owner_email,
		api_key=settings.resend_api_key,
		sender=settings.email_from,
		**timeouts,
	)
