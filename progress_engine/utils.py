"""
Utility functions for the learner progress engine
"""

import logging
import time
from datetime import date, datetime
from functools import wraps
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)


def calendar_day(moment: datetime, timezone: str = "UTC") -> date:
    """Calendar date of a moment as seen in the given zone"""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=ZoneInfo("UTC"))
    return moment.astimezone(ZoneInfo(timezone)).date()


def calculate_success_rate(correct: int, total: int) -> float:
    """Calculate success rate as percentage"""
    if total <= 0:
        return 0.0
    return round(min(100.0, (correct / total) * 100.0), 2)


def retry_on_exception(
    max_retries: int = 3,
    delay: float = 0.0,
    backoff: float = 2.0,
    exceptions: tuple[type[Exception], ...] = (Exception,),
):
    """Decorator for retrying functions on the given exceptions"""

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            last_exception = None

            for attempt in range(max_retries):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    last_exception = e
                    if attempt < max_retries - 1:
                        wait_time = delay * (backoff**attempt)
                        logger.warning(
                            f"Attempt {attempt + 1} failed: {e}. Retrying in {wait_time}s..."
                        )
                        if wait_time > 0:
                            time.sleep(wait_time)
                    else:
                        logger.error(
                            f"All {max_retries} attempts failed for {func.__name__}"
                        )

            raise last_exception

        return wrapper

    return decorator


class Timer:
    """Simple timer for measuring duration"""

    def __init__(self):
        self.start_time = None
        self.end_time = None

    def start(self):
        """Start the timer"""
        self.start_time = time.perf_counter()
        self.end_time = None

    def stop(self):
        """Stop the timer"""
        if self.start_time is not None:
            self.end_time = time.perf_counter()

    def elapsed(self) -> float | None:
        """Get elapsed time in seconds"""
        if self.start_time is None:
            return None

        end = self.end_time or time.perf_counter()
        return end - self.start_time


def log_execution_time(func):
    """Decorator to log function execution time"""

    @wraps(func)
    def wrapper(*args, **kwargs):
        timer = Timer()
        timer.start()
        try:
            result = func(*args, **kwargs)
            timer.stop()
            logger.debug(f"{func.__name__} executed in {timer.elapsed():.3f}s")
            return result
        except Exception as e:
            timer.stop()
            logger.error(f"{func.__name__} failed after {timer.elapsed():.3f}s: {e}")
            raise

    return wrapper
