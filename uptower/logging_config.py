from __future__ import annotations

import json
import logging
import os
from typing import Any

# поля из extra=..., которые попадают в JSON-строку лога
EXTRA_FIELDS = ("monitor_id", "channel_id", "stage")


class JsonFormatter(logging.Formatter):
	def format(self, record: logging.LogRecord) -> str:
		payload: dict[str, Any] = {
			"time": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S%z"),
			"level": record.levelname,
			"logger": record.name,
			"msg": record.getMessage(),
		}
		for name in EXTRA_FIELDS:
			value = getattr(record, name, None)
			if value is not None:
				payload[name] = value
		if record.exc_info:
			payload["exc_info"] = self.formatException(record.exc_info)
		return json.dumps(payload, ensure_ascii=False, default=str)


def setup_logging() -> None:
	"""Корневой логгер движка: LOG_LEVEL задаёт уровень, LOG_JSON=true включает JSON-строки."""
	level = os.getenv("LOG_LEVEL", "INFO").upper()
	use_json = os.getenv("LOG_JSON", "false").lower() in ("1", "true", "yes")
	root = logging.getLogger()
	root.setLevel(level)
	for h in list(root.handlers):
		root.removeHandler(h)
		h.close()
	handler = logging.StreamHandler()
	if use_json:
		handler.setFormatter(JsonFormatter())
	else:
		handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s"))
	root.addHandler(handler)
	# на INFO aiohttp и sqlalchemy слишком многословны
	for noisy in ("aiohttp", "sqlalchemy.engine"):
		logging.getLogger(noisy).setLevel(logging.WARNING)
