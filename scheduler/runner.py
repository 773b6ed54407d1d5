# scheduler/runner.py
import random
import time
from typing import Callable

from utils.logging import get_logger

log = get_logger("scheduler")


def run_daemon(job_fn: Callable[[], None], interval_sec: int, jitter_sec: int = 0,
               max_runs: int | None = None, sleep: Callable[[float], None] = time.sleep) -> int:
    """
    Run `job_fn` every `interval_sec` (± `jitter_sec`) until Ctrl+C.
    A failing job is logged and the loop keeps going. Returns the run count.
    """
    runs = 0
    try:
        while max_runs is None or runs < max_runs:
            try:
                job_fn()
            except Exception:
                log.exception("Scheduled job failed; will retry next cycle.")
            runs += 1
            if max_runs is not None and runs >= max_runs:
                break
            delay = interval_sec + random.uniform(-jitter_sec, jitter_sec) if jitter_sec else interval_sec
            sleep(max(1.0, float(delay)))
    except KeyboardInterrupt:
        print("\nStopped.")
    return runs
