"""Infrastructure helpers: retry policy and Redis connection management."""

from .redis_manager import RedisManager
from .retry import get_ui_step_retry, run_step

__all__ = ["RedisManager", "get_ui_step_retry", "run_step"]
