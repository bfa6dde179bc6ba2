import asyncio
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Path, Query, Request, status
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel

from uptower.config import Settings
from uptower.db.models import Base, engine
from uptower.db.repo import Repository
from uptower.logging_config import setup_logging
from uptower.metrics import render_metrics
from uptower.notifier import NotificationDispatcher
from uptower.scheduler import Scheduler, TickEngine

logger = logging.getLogger(__name__)

STATS_WINDOWS = {
	"last24h": timedelta(hours=24),
	"last7d": timedelta(days=7),
	"last30d": timedelta(days=30),
}


class ErrorResponse(BaseModel):
	code: str
	message: str


class RecheckResponse(BaseModel):
	queued: bool


class ChannelTestResponse(BaseModel):
	delivered: bool


class WindowStats(BaseModel):
	uptime: float
	avg_response_time: int
	total_checks: int


class MonitorStats(BaseModel):
	last24h: WindowStats
	last7d: WindowStats
	last30d: WindowStats


class IncidentOut(BaseModel):
	id: int
	started_at: datetime
	resolved_at: Optional[datetime] = None
	duration_s: Optional[int] = None
	cause: Optional[str] = None


class HourlyStatOut(BaseModel):
	hour: datetime
	avg_response_time: Optional[int] = None
	min_response_time: Optional[int] = None
	max_response_time: Optional[int] = None
	uptime_percentage: int
	check_count: int
	up_count: int
	down_count: int


settings = Settings.from_env()
repository = Repository()
dispatcher = NotificationDispatcher(settings, owner_email_lookup=repository.get_user_email)
# один движок на процесс: планировщик и ручные проверки делят его блокировку
tick_engine = TickEngine(repository, settings, dispatcher=dispatcher)

_scheduler: Optional[Scheduler] = None
_scheduler_task: Optional[asyncio.Task] = None
_background: set = set()


def _scheduler_enabled() -> bool:
	return os.getenv("SCHEDULER_ENABLE", "true").lower() in ("1", "true", "yes")


@asynccontextmanager
async def lifespan(app: FastAPI):
	global _scheduler, _scheduler_task
	setup_logging()
	# убедиться, что схема БД существует (best-effort, основной путь - alembic)
	try:
		Base.metadata.create_all(engine)
	except Exception:
		logger.exception("failed to create database schema")
	if _scheduler_enabled():
		_scheduler = Scheduler(tick_engine, tick_seconds=settings.tick_seconds)
		_scheduler_task = asyncio.create_task(_scheduler.run())
	yield
	if _scheduler is not None:
		_scheduler.stop()
	if _scheduler_task is not None:
		try:
			await asyncio.wait_for(_scheduler_task, timeout=5)
		except asyncio.TimeoutError:
			logger.warning("scheduler did not stop within 5s")
	_scheduler, _scheduler_task = None, None


app = FastAPI(title="Uptower", description="Движок проверок доступности", version="0.1.0", lifespan=lifespan)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
	return JSONResponse(status_code=exc.status_code, content=ErrorResponse(code=str(exc.status_code), message=str(exc.detail)).model_dump())


@app.get("/health")
def health():
	return {"status": "ok"}


@app.get("/metrics", include_in_schema=False)
def metrics_endpoint():
	payload, content_type = render_metrics()
	return PlainTextResponse(payload.decode("utf-8"), media_type=content_type)


@app.get("/ready", include_in_schema=False)
def ready():
	# проверка БД и состояния планировщика
	try:
		repository.list_active_monitors()
	except Exception:
		raise HTTPException(status_code=503, detail="db not ready")
	if _scheduler_enabled() and _scheduler_task is None:
		raise HTTPException(status_code=503, detail="scheduler not running")
	return {"status": "ready"}


@app.post("/monitors/{monitor_id}/recheck", response_model=RecheckResponse, status_code=status.HTTP_202_ACCEPTED)
async def recheck(monitor_id: int = Path(ge=1)):
	if repository.get_monitor(monitor_id) is None:
		raise HTTPException(status_code=404, detail="monitor not found")
	# если планировщик активен - кладём в его ручную очередь с приоритетом
	if _scheduler is not None:
		await _scheduler.enqueue_manual(monitor_id)
	else:
		task = asyncio.create_task(tick_engine.recheck([monitor_id]))
		_background.add(task)
		task.add_done_callback(_background.discard)
	return RecheckResponse(queued=True)


@app.post("/channels/{channel_id}/test", response_model=ChannelTestResponse)
async def test_channel(channel_id: int = Path(ge=1)):
	channel = repository.get_channel(channel_id)
	if channel is None:
		raise HTTPException(status_code=404, detail="channel not found")
	delivered = await dispatcher.send_test(channel)
	return ChannelTestResponse(delivered=delivered)


@app.get("/monitors/{monitor_id}/stats", response_model=MonitorStats)
async def monitor_stats(monitor_id: int = Path(ge=1)):
	if repository.get_monitor(monitor_id) is None:
		raise HTTPException(status_code=404, detail="monitor not found")
	stats = repository.uptime_stats(monitor_id, datetime.now(timezone.utc), STATS_WINDOWS)
	return MonitorStats(**{name: WindowStats(**values) for name, values in stats.items()})


@app.get("/monitors/{monitor_id}/incidents", response_model=List[IncidentOut])
async def monitor_incidents(monitor_id: int = Path(ge=1), limit: int = Query(10, ge=1, le=100)):
	if repository.get_monitor(monitor_id) is None:
		raise HTTPException(status_code=404, detail="monitor not found")
	return [
		IncidentOut(id=i.id, started_at=i.started_at, resolved_at=i.resolved_at, duration_s=i.duration_s, cause=i.cause)
		for i in repository.list_incidents(monitor_id, limit)
	]


@app.get("/monitors/{monitor_id}/hourly", response_model=List[HourlyStatOut])
async def monitor_hourly(monitor_id: int = Path(ge=1), hours: int = Query(24, ge=1, le=24 * 30)):
	if repository.get_monitor(monitor_id) is None:
		raise HTTPException(status_code=404, detail="monitor not found")
	since = datetime.now(timezone.utc) - timedelta(hours=hours)
	return [
		HourlyStatOut(
			hour=s.hour,
			avg_response_time=s.avg_response_time,
			min_response_time=s.min_response_time,
			max_response_time=s.max_response_time,
			uptime_percentage=s.uptime_percentage,
			check_count=s.check_count,
			up_count=s.up_count,
			down_count=s.down_count,
		)
		for s in repository.get_hourly_stats(monitor_id, since)
	]
