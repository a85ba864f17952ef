"""Client-side pacing for Kubernetes and OTC API calls."""

from __future__ import annotations

import os
import threading
import time
from functools import wraps
from typing import Any, Callable, TypeVar

from .. import metrics

_F = TypeVar("_F", bound=Callable[..., Any])

_K8S_RATE_LIMIT_PER_SECOND = float(os.getenv("K8S_RATE_LIMIT_PER_SECOND", "10.0"))
_OTC_RATE_LIMIT_PER_SECOND = float(os.getenv("OTC_RATE_LIMIT_PER_SECOND", "5.0"))


class RateLimiter:
    """Enforce a minimum interval between calls across all worker threads."""

    def __init__(self, api_type: str, per_second: float):
        self.api_type = api_type
        self.min_interval = 1.0 / per_second if per_second > 0 else 0.0
        self._lock = threading.Lock()
        self._last_call = 0.0

    def wait(self) -> None:
        with self._lock:
            now = time.monotonic()
            sleep_time = self._last_call + self.min_interval - now
            if sleep_time > 0:
                metrics.rate_limit_hits_total.labels(api_type=self.api_type).inc()
                time.sleep(sleep_time)
            self._last_call = time.monotonic()

    def __call__(self, func: _F) -> _F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            self.wait()
            return func(*args, **kwargs)

        return wrapper  # type: ignore


rate_limit_k8s = RateLimiter("k8s", _K8S_RATE_LIMIT_PER_SECOND)
rate_limit_otc = RateLimiter("otc", _OTC_RATE_LIMIT_PER_SECOND)
