from datetime import datetime, timezone

from uptower.checker import CheckResult as Outcome
from uptower.checker import CheckRunner

NOW = datetime(2026, 10, 18, 12, 30, 0, tzinfo=timezone.utc)


def up(ms: int = 100, code: int | None = 200) -> Outcome:
    return Outcome(status=True, response_time_ms=ms, status_code=code, message="OK")


def down(message: str = "Expected 200, got 503", ms: int = 100, code: int | None = 503) -> Outcome:
    return Outcome(status=False, response_time_ms=ms, status_code=code, message=message)


class ScriptedRunner(CheckRunner):
    """Runner без сети: результаты по монитору берутся из сценария, вызовы считаются."""

    def __init__(self, script=None, default=None, retry_delay_s: float = 0.0):
        super().__init__(retry_delay_s=retry_delay_s)
        self.script = {k: list(v) for k, v in (script or {}).items()}
        self.default = default or up()
        self.calls: list[int] = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return None

    async def check(self, monitor):
        self.calls.append(monitor.id)
        queue = self.script.get(monitor.id)
        if not queue:
            return self.default
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(item, Exception):
            raise item
        return item


class RecordingDispatcher:
    def __init__(self):
        self.events = []

    async def fan_out(self, channels, event):
        channels = list(channels)
        self.events.append((event, [c.id for c in channels]))
        return {c.id: True for c in channels}


class Clock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now
