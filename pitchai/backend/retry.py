import logging
import time
from typing import Callable, Tuple, Type, TypeVar


logger = logging.getLogger("uvicorn.error")
T = TypeVar("T")


def call_with_retries(
    fn: Callable[[], T],
    *,
    operation: str,
    max_retries: int = 0,
    backoff_seconds: float = 1.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``fn`` once, plus up to ``max_retries`` more times on ``retry_on``.

    The default of zero retries keeps one attempt per external call.
    """
    attempts = max(0, int(max_retries)) + 1
    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except retry_on as exc:
            if attempt >= attempts:
                raise
            delay = backoff_seconds * attempt
            logger.warning(
                "operation=%s attempt=%s/%s failed error=%s retry_in=%.1fs",
                operation,
                attempt,
                attempts,
                exc,
                delay,
            )
            sleep(delay)
    raise RuntimeError(f"{operation} made no attempts.")
