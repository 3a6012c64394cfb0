import logging
import time


class RateLimitFilter(logging.Filter):
    """
    Rate limit filter to prevent log spam.
    Only allows the same log message once per period.

    A failing metric is retried on every poll cycle, so without this the same
    decode/registration error would be logged on every scrape.
    """

    def __init__(self, period_sec: float = 2.0):
        super().__init__()
        self.period = period_sec
        self._last: dict[tuple, float] = {}

    def filter(self, record: logging.LogRecord) -> bool:
        key = (record.name, record.levelno, record.getMessage())
        now = time.monotonic()
        last = self._last.get(key)
        if last is not None and now - last < self.period:
            return False
        self._last[key] = now
        return True


def quiet_pymodbus_logs(level=logging.WARNING, rate_limit_sec: float = 2.0):
    pymodbus_log = logging.getLogger("pymodbus.logging")
    pymodbus_log.setLevel(level)
    if not any(isinstance(f, RateLimitFilter) for f in pymodbus_log.filters):
        pymodbus_log.addFilter(RateLimitFilter(rate_limit_sec))

    async_log = logging.getLogger("asyncio")
    async_log.setLevel(logging.ERROR)
