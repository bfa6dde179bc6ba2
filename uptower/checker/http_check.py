import asyncio
import logging
from time import perf_counter
from typing import Any

import aiohttp

from .types import CheckResult, ERR_MAX_LEN

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 30
USER_AGENT = "Uptower/1.0"


def elapsed_ms(start_time: float) -> int:
    # Переводим в миллисекунды задержку
    return int((perf_counter() - start_time) * 1000)


async def check_http(session: aiohttp.ClientSession, monitor: Any, *, ssl_verify: bool = True) -> CheckResult:
    """HTTP(S) проверка: ok только при точном совпадении кода ответа с ожидаемым."""
    url = monitor.url
    if not url:
        return CheckResult.down("URL is required")

    method = (monitor.method or "GET").upper()
    expected_status = monitor.expected_status or 200
    timeout = aiohttp.ClientTimeout(total=monitor.timeout_s or DEFAULT_TIMEOUT_S)

    start = perf_counter()
    try:
        async with session.request(
            method,
            url,
            timeout=timeout,
            allow_redirects=True,
            ssl=None if ssl_verify else False,
            headers={"User-Agent": USER_AGENT},
        ) as response:
            status_code = response.status
        latency_ms = elapsed_ms(start)
        if status_code == expected_status:
            return CheckResult(status=True, status_code=status_code, response_time_ms=latency_ms, message="OK")
        return CheckResult(
            status=False,
            status_code=status_code,
            response_time_ms=latency_ms,
            message=f"Expected {expected_status}, got {status_code}",
        )

    except asyncio.TimeoutError:
        return CheckResult.down("Request timeout", response_time_ms=elapsed_ms(start))

    except aiohttp.ClientSSLError as e_ssl:
        return CheckResult.down(str(e_ssl) or "SSL error", response_time_ms=elapsed_ms(start))

    except aiohttp.ClientError as e_client:
        return CheckResult.down(str(e_client) or "Client error", response_time_ms=elapsed_ms(start))

    except Exception as e:
        logger.warning("unexpected http check failure for %s: %s", url, e)
        return CheckResult.down(f"Unexpected error: {e}"[:ERR_MAX_LEN], response_time_ms=elapsed_ms(start))
