import asyncio
import logging
from time import perf_counter
from typing import Any

import aiohttp

from .http_check import DEFAULT_TIMEOUT_S, elapsed_ms
from .types import CheckResult

logger = logging.getLogger(__name__)

DEFAULT_RECORD_TYPE = "A"

# Коды ответа резолвера (RCODE) -> человекочитаемое сообщение
RCODE_MESSAGES = {
    1: "Format error",
    2: "Server failure",
    3: "Non-existent domain (NXDOMAIN)",
    4: "Not implemented",
    5: "Query refused",
}


def describe_answer(payload: dict, record_type: str) -> tuple[bool, str]:
    """Разобрать JSON ответа DNS-over-HTTPS: (ok, message)."""
    status = payload.get("Status")
    if status != 0:
        return False, RCODE_MESSAGES.get(status, f"DNS error: {status}")
    answers = payload.get("Answer") or []
    values = [str(a.get("data", "")) for a in answers if isinstance(a, dict)]
    if not values:
        return False, f"No {record_type} records found"
    return True, f"Found {len(values)} {record_type} record(s): {', '.join(values)}"


async def check_dns(session: aiohttp.ClientSession, monitor: Any, *, doh_url: str) -> CheckResult:
    hostname = monitor.hostname
    if not hostname:
        return CheckResult.down("Hostname is required")

    record_type = (monitor.dns_record_type or DEFAULT_RECORD_TYPE).upper()
    timeout = aiohttp.ClientTimeout(total=monitor.timeout_s or DEFAULT_TIMEOUT_S)

    start = perf_counter()
    try:
        async with session.get(
            doh_url,
            params={"name": hostname, "type": record_type},
            headers={"Accept": "application/dns-json"},
            timeout=timeout,
        ) as response:
            latency_ms = elapsed_ms(start)
            if not 200 <= response.status < 300:
                return CheckResult.down(f"DNS query failed: {response.status}", response_time_ms=latency_ms)
            # резолверы отдают application/dns-json, проверку content-type отключаем
            payload = await response.json(content_type=None)
    except asyncio.TimeoutError:
        return CheckResult.down("DNS query timeout", response_time_ms=elapsed_ms(start))
    except aiohttp.ClientError as e:
        return CheckResult.down(str(e) or "DNS query failed", response_time_ms=elapsed_ms(start))
    except ValueError:
        return CheckResult.down("DNS query failed: invalid response", response_time_ms=elapsed_ms(start))
    except Exception as e:
        logger.warning("unexpected dns check failure for %s: %s", hostname, e)
        return CheckResult.down(str(e) or "DNS query failed", response_time_ms=elapsed_ms(start))

    if not isinstance(payload, dict):
        return CheckResult.down("DNS query failed: invalid response", response_time_ms=latency_ms)
    ok, message = describe_answer(payload, record_type)
    return CheckResult(status=ok, response_time_ms=latency_ms, message=message)
