"""Best-effort side effects

Work that follows a committed primary operation (receipts, delivery logs) runs
through `run_best_effort`: failures are logged and reported as False, never
raised, so they cannot change the outcome of the primary operation.
"""
import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)


def run_best_effort(name: str, func: Callable[..., Any], *args, **kwargs) -> bool:
    """Run a side effect, returning True on success and False on failure"""
    try:
        func(*args, **kwargs)
        return True
    except Exception as e:
        logger.warning(f"Best-effort step '{name}' failed: {e}", exc_info=True)
        return False
