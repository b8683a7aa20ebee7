"""
Entry run: log in, collect free listings, add the eligible ones to the cart
and place the order.

The run has exactly one error boundary (``EntryRun.run``). Whatever happens,
a result file is written before the run returns or re-raises.
"""

import asyncio
import logging
from typing import List, Optional

from ..integrations.revcomps import HELD_TICKET, RevCompsSite, browser_session
from ..utils.config import RunSettings, describe_settings
from ..utils.logger import get_logger
from .listing import build_candidate_set
from .result import RunHistory, RunResult, write_result

logger = get_logger("entry_run")


class EntryRunError(Exception):
    """Base class for errors raised by the entry run itself."""


class RunTimeoutError(EntryRunError):
    """The run exceeded its overall time budget."""


class EntryRun:
    """One pass over the RevComps free listings."""

    def __init__(self, site, settings: RunSettings, history: Optional[RunHistory] = None):
        """
        Args:
            site: Page driver exposing the RevCompsSite interface
            settings: Run settings
            history: History to append to, a fresh one by default
        """
        self.site = site
        self.settings = settings
        self.history = history if history is not None else RunHistory()
        self.eligible_urls: List[str] = []
        self.added_urls: List[str] = []

    async def run(self) -> RunResult:
        """
        Execute the run and write its result.

        Returns:
            The written RunResult (status ok or no_items)

        Raises:
            Exception: Any failure, after an error result has been written
        """
        try:
            result = await self._run_within_budget()
        except Exception as e:
            message = str(e) or type(e).__name__
            self.history.add(f"Error: {message}", logging.ERROR)
            write_result(
                RunResult.failed(self.history.lines, self.added_urls, message),
                self.settings.result_path
            )
            raise

        write_result(result, self.settings.result_path)
        return result

    async def _run_within_budget(self) -> RunResult:
        budget = self.settings.run_timeout
        try:
            return await asyncio.wait_for(self._execute(), timeout=budget)
        except asyncio.TimeoutError as e:
            raise RunTimeoutError(f"Run exceeded its {budget:g}s time budget") from e

    async def _execute(self) -> RunResult:
        history = self.history
        history.add("Starting entry run")
        if self.settings.test_mode:
            history.add("Test mode enabled, the order will not be placed")

        await self._sign_in()
        await self._apply_free_filter()
        candidates = await self._collect_candidates()
        await self._enter_candidates(candidates)

        if not self.added_urls:
            history.add("No eligible free items, skipping checkout.")
            return RunResult.no_items(history.lines, self.added_urls)

        await self._checkout()
        return RunResult.ok(history.lines, self.added_urls)

    async def _sign_in(self) -> None:
        site = self.site
        pacing = self.settings.pacing

        await site.open_home()
        self.history.add("Loaded homepage")
        await site.pause(pacing.page_load)

        if await site.dismiss_cookie_banner():
            self.history.add("Accepted cookies")
        else:
            self.history.add("No cookie banner shown")
        await site.pause(pacing.form_step)

        logged_in = False
        if await site.needs_login():
            await site.log_in(self.settings.credentials)
            self.history.add("Submitted login")
            logged_in = True
        else:
            self.history.add("Session already authenticated, skipping login")

        await site.wait_for_listings()
        self.history.add("Listings loaded")

        state_path = self.settings.storage_state_path
        if state_path and logged_in:
            await site.save_session_state(state_path)
            self.history.add(f"Saved session state to {state_path}")

    async def _apply_free_filter(self) -> None:
        if not self.settings.filter.enabled:
            return
        if not await self.site.has_free_filter():
            self.history.add("Free filter not present, scanning all listings")
            return

        strategy = await self.site.activate_free_filter()
        if strategy:
            self.history.add(f"Activated free filter ({strategy})")
        else:
            self.history.warning("Free filter did not activate, scanning unfiltered listings")

    async def _collect_candidates(self) -> List[str]:
        listings = await self.site.extract_free_listings()
        self.history.add(f"Found {len(listings)} free items before filtering")
        candidates = build_candidate_set(listings, self.history)
        self.history.add(f"Found {len(candidates)} free items")
        return candidates

    async def _enter_candidates(self, candidates: List[str]) -> None:
        site = self.site
        pacing = self.settings.pacing
        answer = self.settings.answer

        for index, url in enumerate(candidates, start=1):
            self.history.add(f"Free item {index}: {url}")
            await site.open_listing(url)
            self.history.add(f"Opened item page: {url}")
            await site.pause(pacing.detail_page)

            marker = await site.held_marker()
            if marker == HELD_TICKET:
                self.history.add(f"Skipping already-held ticket: {url}")
                continue
            if marker:
                self.history.add(f"Skipping maxed-out listing: {url}")
                continue

            self.eligible_urls.append(url)
            self.history.add(f"Eligible item: {url}")

            if await site.answer_question(answer):
                self.history.add(f"Selected answer: {answer}")
                await site.pause(pacing.answer)

            await site.submit_entry()
            self.added_urls.append(url)
            self.history.add(f"Added to cart: {url}")
            await site.pause(pacing.after_add)

    async def _checkout(self) -> None:
        site = self.site
        pacing = self.settings.pacing

        await site.open_cart()
        self.history.add("Opened cart")
        await site.pause(pacing.cart)

        await site.proceed_to_checkout()
        self.history.add("Proceeded to checkout")
        await site.pause(pacing.checkout)

        if self.settings.test_mode:
            self.history.add("Test mode: skipping order placement")
            return

        await site.place_order()
        self.history.add("Placed order")


async def run_entry(settings: RunSettings) -> RunResult:
    """
    Open a browser session and perform one entry run.

    Args:
        settings: Run settings

    Returns:
        The run result
    """
    for line in describe_settings(settings):
        logger.info(line)

    async with browser_session(settings) as (context, page):
        site = RevCompsSite(page, settings, context=context)
        return await EntryRun(site, settings).run()
