"""
Utility helper functions for the RevComps entry automation.
"""

import math
import random
from typing import Callable, Tuple

REFERRAL_MARKER = "referral"


def random_delay_ms(min_ms: int, max_ms: int, rand: Callable[[], float] = random.random) -> int:
    """
    Pick a pacing delay uniformly from [min_ms, max_ms], both bounds inclusive.

    Args:
        min_ms: Lower bound in milliseconds
        max_ms: Upper bound in milliseconds
        rand: Source of floats in [0, 1)

    Returns:
        Delay in milliseconds
    """
    if max_ms < min_ms:
        raise ValueError(f"max_ms ({max_ms}) is smaller than min_ms ({min_ms})")
    return math.floor(rand() * (max_ms - min_ms + 1)) + min_ms


async def sleep_random(page, window: Tuple[int, int]) -> int:
    """
    Wait on the page for a random delay within the window.

    Args:
        page: Playwright page
        window: (min_ms, max_ms)

    Returns:
        The delay that was waited, in milliseconds
    """
    delay = random_delay_ms(*window)
    await page.wait_for_timeout(delay)
    return delay


def is_referral(title: str, url: str) -> bool:
    """Check whether a listing is a referral promotion."""
    return REFERRAL_MARKER in (title or "").lower() or REFERRAL_MARKER in (url or "").lower()


def clean_text(text: str) -> str:
    """Collapse whitespace in scraped text."""
    if not text:
        return ""
    return " ".join(text.split())
