from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from uptower.checker import CheckResult, CheckRunner
from uptower.db.repo import Heartbeat, Repository, ensure_utc
from uptower.metrics import record_check, record_incident, record_pipeline_error
from uptower.notifier import NotificationDispatcher, TransitionEvent
from uptower.selector import in_maintenance

logger = logging.getLogger(__name__)

DEFAULT_DOWN_CAUSE = "Monitor is down"


def utcnow() -> datetime:
	return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Transition:
	status: bool  # новый статус: True = поднялся, False = упал
	initial: bool = False  # первый в истории результат, и он down


def detect_transition(previous: Optional[Heartbeat], current: CheckResult) -> Optional[Transition]:
	"""Сравнить предыдущий сохранённый результат с новым.

	Первый в истории up переходом не считается (закрывать нечего), первый down - считается.
	"""
	if previous is None:
		return None if current.status else Transition(status=False, initial=True)
	if previous.status != current.status:
		return Transition(status=current.status)
	return None


def incident_duration_s(started_at: datetime, resolved_at: datetime) -> int:
	seconds = (ensure_utc(resolved_at) - ensure_utc(started_at)).total_seconds()
	return max(0, int(seconds))


@dataclass
class ReconcileOutcome:
	monitor_id: int
	result: Optional[CheckResult] = None
	transition: Optional[Transition] = None
	incident_opened: Optional[int] = None
	incident_closed: Optional[int] = None
	notified: dict[int, bool] = field(default_factory=dict)
	suppressed: bool = False
	error: Optional[str] = None  # этап, на котором оборвался конвейер


class Reconciler:
	"""Конвейер одного монитора: проверка -> запись -> переход -> инцидент -> уведомления."""

	def __init__(
		self,
		repo: Repository,
		runner: CheckRunner,
		dispatcher: NotificationDispatcher,
		*,
		clock: Callable[[], datetime] = utcnow,
	) -> None:
		self._repo = repo
		self._runner = runner
		self._dispatcher = dispatcher
		self._clock = clock

	async def reconcile(self, monitor: Any, previous: Optional[Heartbeat]) -> ReconcileOutcome:
		"""Никогда не бросает: сбой любого шага логируется и обрывает только этот монитор."""
		outcome = ReconcileOutcome(monitor_id=monitor.id)
		stage = "check"
		try:
			result = await self._runner.run_with_retries(monitor)
			outcome.result = result
			record_check(monitor.type, ok=result.status, latency_value_ms=result.response_time_ms)

			stage = "persist"
			checked_at = self._clock()
			self._repo.insert_result(monitor.id, result, checked_at)

			transition = detect_transition(previous, result)
			outcome.transition = transition
			if transition is None:
				return outcome

			stage = "incident"
			if transition.status:
				outcome.incident_closed = self._close_incident(monitor, checked_at)
			else:
				outcome.incident_opened = self._open_incident(monitor, result, checked_at)

			if in_maintenance(monitor, checked_at):
				logger.info("monitor %s changed to %s during maintenance, notifications suppressed", monitor.id, "up" if result.status else "down")
				outcome.suppressed = True
				return outcome

			stage = "notify"
			channels = self._repo.channels_for_monitor(monitor.id)
			event = TransitionEvent(
				monitor_id=monitor.id,
				monitor_name=monitor.name or f"monitor {monitor.id}",
				status=result.status,
				message=result.message or ("Monitor is up" if result.status else DEFAULT_DOWN_CAUSE),
				response_time_ms=result.response_time_ms,
				url=monitor.url or None,
				ts=checked_at,
			)
			outcome.notified = await self._dispatcher.fan_out(channels, event)
		except Exception:
			logger.exception("monitor %s pipeline failed at stage %s", monitor.id, stage, extra={"monitor_id": monitor.id, "stage": stage})
			record_pipeline_error(stage)
			outcome.error = stage
		return outcome

	def _open_incident(self, monitor: Any, result: CheckResult, now: datetime) -> Optional[int]:
		existing = self._repo.find_open_incident(monitor.id)
		if existing is not None:
			# не больше одного открытого инцидента на монитор
			logger.warning("monitor %s already has open incident %s, not opening another", monitor.id, existing.id)
			return None
		incident = self._repo.insert_incident(monitor.id, now, result.message or DEFAULT_DOWN_CAUSE)
		record_incident("opened")
		logger.info("incident %s opened for monitor %s: %s", incident.id, monitor.id, incident.cause)
		return incident.id

	def _close_incident(self, monitor: Any, now: datetime) -> Optional[int]:
		incident = self._repo.find_open_incident(monitor.id)
		if incident is None:
			logger.info("monitor %s recovered without an open incident", monitor.id)
			return None
		duration = incident_duration_s(incident.started_at, now)
		self._repo.close_incident(incident.id, now, duration)
		record_incident("closed")
		logger.info("incident %s closed for monitor %s after %ss", incident.id, monitor.id, duration)
		return incident.id
