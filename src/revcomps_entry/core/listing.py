"""
Listing data model and candidate filtering.
"""

from dataclasses import dataclass
from typing import Iterable, List

from ..utils.helpers import is_referral
from .result import RunHistory


@dataclass(frozen=True)
class Listing:
    """A competition shown on the listings page."""
    title: str
    url: str


def build_candidate_set(listings: Iterable[Listing], history: RunHistory) -> List[str]:
    """
    Reduce scraped listings to the ordered urls worth visiting.

    Referral promotions and listings without a url are dropped, and
    duplicates keep their first position. Every exclusion is logged.

    Args:
        listings: Listings in page order
        history: Run history receiving one line per exclusion

    Returns:
        Unique candidate urls in first-seen order
    """
    candidates: List[str] = []
    seen = set()

    for listing in listings:
        if is_referral(listing.title, listing.url):
            history.add(f"Filtered referral: {listing.title} - {listing.url}")
            continue
        if not listing.url:
            history.add(f"Skipped listing without url: {listing.title}")
            continue
        if listing.url in seen:
            history.add(f"Skipped duplicate listing: {listing.title} - {listing.url}")
            continue
        seen.add(listing.url)
        candidates.append(listing.url)

    return candidates
