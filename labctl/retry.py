"""
Retry engine: linear backoff with jitter for flaky external actions.
"""

import random
import time
from typing import Callable

from .errors import LabError, WorkflowInterrupted
from .step_runner import CancellationToken
from .utils.logger import get_logger

logger = get_logger("retry")


def calculate_delay(attempt: int, base_delay: float, jitter_bound: float, rng: random.Random | None = None) -> float:
    """Delay before retrying after ``attempt`` (1-based) failed."""
    jitter = (rng or random).uniform(0, jitter_bound) if jitter_bound > 0 else 0.0
    return base_delay * attempt + jitter


def retry_with_backoff(
    max_attempts: int,
    base_delay: float,
    action: Callable[[], bool],
    *,
    jitter_bound: float = 2.0,
    sleep: Callable[[float], None] = time.sleep,
    rng: random.Random | None = None,
    cancel_token: CancellationToken | None = None,
) -> bool:
    """Invoke ``action`` up to ``max_attempts`` times.

    An attempt fails when the action returns ``False`` or raises a
    ``LabError``. Other exceptions propagate. Returns True on the first
    success and False once every attempt has failed. A cancelled
    ``cancel_token`` stops the loop before the next attempt or sleep with
    ``WorkflowInterrupted``.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

    for attempt in range(1, max_attempts + 1):
        if cancel_token is not None:
            cancel_token.raise_if_cancelled()
        try:
            if action() is not False:
                if attempt > 1:
                    logger.info(f"Succeeded on attempt {attempt}/{max_attempts}: {action}")
                return True
        except WorkflowInterrupted:
            raise
        except LabError as e:
            logger.debug(f"Attempt {attempt}/{max_attempts} raised: {e}")

        if attempt < max_attempts:
            if cancel_token is not None:
                cancel_token.raise_if_cancelled()
            delay = calculate_delay(attempt, base_delay, jitter_bound, rng)
            logger.warning(f"Attempt {attempt}/{max_attempts} failed, retrying in {delay:.1f}s: {action}")
            sleep(delay)

    logger.error(f"Command failed after {max_attempts} attempts: {action}")
    return False
