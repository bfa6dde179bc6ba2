import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from time import perf_counter
from typing import Callable, Optional

from uptower.aggregator import aggregate_hour
from uptower.checker import CheckRunner
from uptower.config import Settings
from uptower.db.repo import Repository, ensure_utc
from uptower.metrics import record_pipeline_error, set_manual_queue_size, tick_duration_s
from uptower.notifier import NotificationDispatcher
from uptower.reconciler import ReconcileOutcome, Reconciler, utcnow
from uptower.retention import sweep_results
from uptower.selector import select_due

logger = logging.getLogger(__name__)


@dataclass
class TickReport:
	started_at: datetime
	skipped: bool = False
	due: int = 0
	outcomes: list[ReconcileOutcome] = field(default_factory=list)
	aggregated: int = 0
	swept: int = 0
	errors: list[str] = field(default_factory=list)

	@property
	def failed(self) -> int:
		return sum(1 for o in self.outcomes if o.error is not None)


class TickEngine:
	"""Один тик: выбор due-мониторов -> параллельная сверка -> почасовая статистика -> очистка."""

	def __init__(
		self,
		repo: Repository,
		settings: Settings,
		*,
		dispatcher: Optional[NotificationDispatcher] = None,
		runner_factory: Optional[Callable[[], CheckRunner]] = None,
		clock: Callable[[], datetime] = utcnow,
	) -> None:
		self._repo = repo
		self._settings = settings
		self._dispatcher = dispatcher or NotificationDispatcher(settings, owner_email_lookup=repo.get_user_email)
		self._runner_factory = runner_factory or self._default_runner
		self._clock = clock
		# тики не должны пересекаться внутри процесса
		self._lock = asyncio.Lock()

	def _default_runner(self) -> CheckRunner:
		return CheckRunner(
			max_concurrent=self._settings.global_concurrency,
			retry_delay_s=self._settings.retry_delay_s,
			doh_url=self._settings.doh_url,
			ssl_verify=self._settings.http_ssl_verify,
		)

	async def run_tick(self, now: Optional[datetime] = None) -> TickReport:
		now = ensure_utc(now or self._clock())
		if self._lock.locked():
			logger.warning("previous tick still running, skipping tick at %s", now.isoformat())
			return TickReport(started_at=now, skipped=True)
		async with self._lock:
			start = perf_counter()
			try:
				return await self._run(now)
			finally:
				tick_duration_s.observe(perf_counter() - start)

	async def _run(self, now: datetime) -> TickReport:
		report = TickReport(started_at=now)
		try:
			monitors = self._repo.list_active_monitors()
			latest = self._repo.latest_results_for([m.id for m in monitors])
		except Exception:
			logger.exception("failed to load monitors for tick")
			record_pipeline_error("load")
			report.errors.append("load")
			return report

		due = select_due(monitors, latest, now)
		report.due = len(due)
		if due:
			report.outcomes = await self._reconcile_all(due, latest)

		try:
			report.aggregated = len(aggregate_hour(self._repo, [m.id for m in monitors], now))
		except Exception:
			logger.exception("hourly aggregation failed")
			record_pipeline_error("aggregate")
			report.errors.append("aggregate")

		try:
			report.swept = sweep_results(self._repo, now, self._settings.retention_days)
		except Exception:
			logger.exception("retention sweep failed")
			record_pipeline_error("retention")
			report.errors.append("retention")

		logger.info(
			"tick %s: monitors=%s due=%s failed=%s aggregated=%s swept=%s",
			now.isoformat(), len(monitors), report.due, report.failed, report.aggregated, report.swept,
		)
		return report

	async def _reconcile_all(self, monitors: list, latest: dict) -> list[ReconcileOutcome]:
		async with self._runner_factory() as runner:
			reconciler = Reconciler(self._repo, runner, self._dispatcher, clock=self._clock)
			return list(await asyncio.gather(*(reconciler.reconcile(m, latest.get(m.id)) for m in monitors)))

	async def recheck(self, monitor_ids: list[int]) -> list[ReconcileOutcome]:
		"""Внеочередная проверка мониторов независимо от интервала (ручной запрос)."""
		monitors = [m for m in (self._repo.get_monitor(mid) for mid in dict.fromkeys(monitor_ids)) if m is not None]
		if not monitors:
			return []
		async with self._lock:
			latest = self._repo.latest_results_for([m.id for m in monitors])
			return await self._reconcile_all(monitors, latest)


class Scheduler:
	def __init__(self, engine: TickEngine, *, tick_seconds: int = 60) -> None:
		self._engine = engine
		self._tick_seconds = max(1, tick_seconds)
		self._stop_event = asyncio.Event()
		self._manual_queue: asyncio.Queue[int] = asyncio.Queue()

	@property
	def engine(self) -> TickEngine:
		return self._engine

	async def run(self) -> None:
		logger.info("Scheduler started: tick=%ss", self._tick_seconds)
		while not self._stop_event.is_set():
			try:
				# сначала обрабатываем ручные запросы повышенного приоритета
				await self._drain_manual_queue()
				await self._engine.run_tick(datetime.now(timezone.utc))
			except Exception as e:
				logger.exception("scheduler tick failed: %s", e)
			finally:
				try:
					await asyncio.wait_for(self._stop_event.wait(), timeout=self._tick_seconds)
				except asyncio.TimeoutError:
					pass

	def stop(self) -> None:
		self._stop_event.set()

	async def enqueue_manual(self, monitor_id: int) -> None:
		"""Поместить монитор в ручную очередь для немедленной проверки."""
		await self._manual_queue.put(monitor_id)
		set_manual_queue_size(self._manual_queue.qsize())

	async def _drain_manual_queue(self) -> None:
		items: list[int] = []
		while not self._manual_queue.empty():
			items.append(self._manual_queue.get_nowait())
		set_manual_queue_size(self._manual_queue.qsize())
		if not items:
			return
		await self._engine.recheck(items)


def from_env(repo: Optional[Repository] = None) -> "Scheduler":
	settings = Settings.from_env()
	engine = TickEngine(repo or Repository(), settings)
	return Scheduler(engine, tick_seconds=settings.tick_seconds)
