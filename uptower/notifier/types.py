from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


@dataclass
class TransitionEvent:
	monitor_id: Optional[int]
	monitor_name: str
	status: bool  # True = up, False = down
	message: str
	response_time_ms: Optional[int] = None
	url: Optional[str] = None
	ts: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

	@property
	def status_word(self) -> str:
		return "up" if self.status else "down"

	@property
	def status_text(self) -> str:
		return "UP" if self.status else "DOWN"
