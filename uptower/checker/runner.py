import asyncio
import logging
from types import TracebackType
from typing import Any, Optional, Type

import aiohttp

from uptower.config import DEFAULT_DOH_URL
from uptower.db.models import MONITOR_TYPES
from .dns_check import check_dns
from .http_check import USER_AGENT, check_http
from .tcp_check import check_tcp
from .types import CheckResult

logger = logging.getLogger(__name__)

MAX_RETRIES = 5


class CheckRunner:
    """Общая сессия aiohttp и семафор для всех проверок одного тика."""

    def __init__(self, max_concurrent: int = 10,
                retry_delay_s: float = 1.0,
                doh_url: str = DEFAULT_DOH_URL,
                ssl_verify: bool = True):
        if (not isinstance(max_concurrent, int) or max_concurrent < 1):
            raise ValueError("max_concurrent должен быть целым числом >= 1")

        self._max_concurrent = max_concurrent
        self._retry_delay_s = max(0.0, float(retry_delay_s))
        self._doh_url = doh_url
        self._ssl_verify = ssl_verify
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "CheckRunner":
        self._semaphore = asyncio.Semaphore(self._max_concurrent)
        # Создаём сессию без дефолтного таймаута, таймаут задаётся в каждом запросе
        self._session = aiohttp.ClientSession(headers={"User-Agent": USER_AGENT})
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Optional[TracebackType]
    ) -> None:
        if self._session:
            try:
                await self._session.close()
            except Exception as e:
                logger.warning(f"Failed to close session: {e}")
        self._semaphore = None
        self._session = None

    async def check(self, monitor: Any) -> CheckResult:
        """Одна попытка проверки нужным исполнителем; ошибки сети возвращаются как down-результат."""
        if (self._semaphore is None or self._session is None):
            raise RuntimeError("CheckRunner должен использоваться внутри 'async with' блока")

        # поля цели не соответствуют типу: до исполнителя не доходим
        target_error = monitor.target_error()
        if target_error:
            return CheckResult.down(target_error)

        async with self._semaphore:
            if monitor.type in ("http", "https"):
                return await check_http(self._session, monitor, ssl_verify=self._ssl_verify)
            if monitor.type == "tcp":
                return await check_tcp(monitor)
            if monitor.type == "dns":
                return await check_dns(self._session, monitor, doh_url=self._doh_url)
        return CheckResult.down(f"Unknown monitor type: {monitor.type}")

    async def run_with_retries(self, monitor: Any) -> CheckResult:
        """До retries+1 попыток с фиксированной паузой; возвращает первый успех или последний провал."""
        if monitor.type not in MONITOR_TYPES:
            # повтор не изменит результат для неизвестного типа
            return await self.check(monitor)
        retries = min(max(int(monitor.retries or 0), 0), MAX_RETRIES)
        result = CheckResult.down("No check performed")
        for attempt in range(retries + 1):
            result = await self.check(monitor)
            if result.status:
                return result
            if attempt < retries:
                logger.debug("monitor %s attempt %s failed: %s", monitor.id, attempt + 1, result.message)
                await asyncio.sleep(self._retry_delay_s)
        return result
