import asyncio
import logging
from time import perf_counter
from typing import Any

from .http_check import DEFAULT_TIMEOUT_S, elapsed_ms
from .types import CheckResult

logger = logging.getLogger(__name__)


async def check_tcp(monitor: Any) -> CheckResult:
    """TCP проверка: успех, если соединение открылось до истечения таймаута."""
    hostname = monitor.hostname
    port = monitor.port
    if not hostname or not port:
        return CheckResult.down("Hostname and port are required")

    timeout_s = monitor.timeout_s or DEFAULT_TIMEOUT_S
    start = perf_counter()
    try:
        _, writer = await asyncio.wait_for(asyncio.open_connection(hostname, int(port)), timeout=timeout_s)
    except asyncio.TimeoutError:
        return CheckResult.down("Connection timeout", response_time_ms=elapsed_ms(start))
    except OSError as e:
        return CheckResult.down(str(e) or "Connection failed", response_time_ms=elapsed_ms(start))
    except Exception as e:
        logger.warning("unexpected tcp check failure for %s:%s: %s", hostname, port, e)
        return CheckResult.down(str(e) or "Connection failed", response_time_ms=elapsed_ms(start))

    latency_ms = elapsed_ms(start)
    writer.close()
    try:
        await writer.wait_closed()
    except OSError:
        # соединение уже установлено, ошибка закрытия на результат не влияет
        pass
    return CheckResult(status=True, response_time_ms=latency_ms, message="Connection successful")
