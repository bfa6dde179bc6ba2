from __future__ import annotations

from typing import Any, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class ChannelConfigError(ValueError):
	"""Конфигурация канала уведомлений не подходит под его тип."""


class _ChannelConfig(BaseModel):
	model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)


class WebhookConfig(_ChannelConfig):
	url: str = Field(min_length=1)


class DiscordConfig(_ChannelConfig):
	webhook_url: str = Field(alias="webhookUrl", min_length=1)


class SlackConfig(_ChannelConfig):
	webhook_url: str = Field(alias="webhookUrl", min_length=1)


class TelegramConfig(_ChannelConfig):
	bot_token: str = Field(alias="botToken", min_length=1)
	chat_id: str = Field(alias="chatId", min_length=1)

	@field_validator("chat_id", mode="before")
	@classmethod
	def coerce_chat_id(cls, v: Any) -> Any:
		# chat id часто хранится числом
		if isinstance(v, int) and not isinstance(v, bool):
			return str(v)
		return v


class EmailConfig(_ChannelConfig):
	# по умолчанию письмо уходит на email владельца канала
	to: Optional[str] = None


ChannelConfig = Union[WebhookConfig, DiscordConfig, SlackConfig, TelegramConfig, EmailConfig]

CONFIG_MODELS: dict[str, type[_ChannelConfig]] = {
	"webhook": WebhookConfig,
	"discord": DiscordConfig,
	"slack": SlackConfig,
	"telegram": TelegramConfig,
	"email": EmailConfig,
}


def parse_channel_config(channel_type: str, config: Optional[Mapping[str, Any]]) -> ChannelConfig:
	"""Разобрать непрозрачный словарь конфигурации в модель, соответствующую типу канала."""
	model = CONFIG_MODELS.get(channel_type)
	if model is None:
		raise ChannelConfigError(f"Unknown notification type: {channel_type}")
	if config is None:
		raise ChannelConfigError("Notification config is missing")
	try:
		return model.model_validate(dict(config))
	except ValidationError as e:
		fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
		raise ChannelConfigError(f"Invalid {channel_type} config: {fields}") from e
