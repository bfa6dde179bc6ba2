from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

ERR_MAX_LEN = 512


@dataclass(frozen=True)
class CheckResult:
	"""Результат одной завершённой проверки (после ретраев)."""
	status: bool
	response_time_ms: int
	status_code: Optional[int] = None
	message: Optional[str] = None

	@classmethod
	def down(cls, message: str, *, response_time_ms: int = 0, status_code: Optional[int] = None) -> "CheckResult":
		return cls(status=False, response_time_ms=response_time_ms, status_code=status_code, message=(message or "")[:ERR_MAX_LEN])
