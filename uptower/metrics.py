from __future__ import annotations

from typing import Optional

from prometheus_client import Counter, Histogram, Gauge, CONTENT_TYPE_LATEST, generate_latest

# Глобальный реестр метрик (используется по умолчанию)

checks_total = Counter(
	"uptower_checks_total",
	"Общее количество завершённых проверок мониторов",
	labelnames=("monitor_type", "outcome"),
)

latency_ms = Histogram(
	"uptower_check_latency_ms",
	"Время проверки в миллисекундах",
	buckets=(50, 100, 200, 300, 500, 750, 1000, 1500, 2000, 3000, 5000, 10000, 30000),
	labelnames=("monitor_type",),
)

incidents_total = Counter(
	"uptower_incidents_total",
	"Открытые и закрытые инциденты",
	labelnames=("action",),
)

notifications_total = Counter(
	"uptower_notifications_total",
	"Отправки уведомлений по типу канала и исходу",
	labelnames=("channel_type", "outcome"),
)

tick_duration_s = Histogram(
	"uptower_tick_duration_seconds",
	"Длительность одного тика планировщика",
	buckets=(0.1, 0.5, 1, 2, 5, 10, 30, 60, 120),
)

pipeline_errors_total = Counter(
	"uptower_pipeline_errors_total",
	"Ошибки конвейера отдельного монитора и фоновых шагов тика",
	labelnames=("stage",),
)

manual_queue_size = Gauge(
	"uptower_manual_queue_size",
	"Размер очереди ручных проверок",
)


def record_check(monitor_type: str, *, ok: bool, latency_value_ms: Optional[int]) -> None:
	"""Записать метрики Prometheus для одной проверки."""
	checks_total.labels(monitor_type=monitor_type, outcome=("success" if ok else "failure")).inc()
	if latency_value_ms is not None:
		latency_ms.labels(monitor_type=monitor_type).observe(max(0.0, float(latency_value_ms)))


def record_incident(action: str) -> None:
	incidents_total.labels(action=action).inc()


def record_notification(channel_type: str, *, ok: bool) -> None:
	notifications_total.labels(channel_type=channel_type, outcome=("success" if ok else "failure")).inc()


def record_pipeline_error(stage: str) -> None:
	pipeline_errors_total.labels(stage=stage).inc()


def set_manual_queue_size(n: int) -> None:
	manual_queue_size.set(max(0, int(n)))


def render_metrics() -> tuple[bytes, str]:
	"""Вернуть полезную нагрузку метрик и тип контента для FastAPI-роута."""
	return generate_latest(), CONTENT_TYPE_LATEST
