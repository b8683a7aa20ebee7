"""
Playwright driver for the RevComps site.

Wraps every page interaction the entry run needs. Selectors come from
``SiteSelectors`` so layout changes only touch configuration.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Tuple

from playwright.async_api import (
    BrowserContext,
    Page,
    Error as PlaywrightError,
    async_playwright,
)

from ..core.listing import Listing
from ..utils.config import Credentials, FilterSettings, RunSettings, SiteSelectors
from ..utils.helpers import clean_text, sleep_random
from ..utils.logger import get_logger

logger = get_logger("revcomps")

HELD_TICKET = "held_ticket"
LIMIT_REACHED = "limit_reached"


@asynccontextmanager
async def browser_session(settings: RunSettings) -> AsyncIterator[Tuple[BrowserContext, Page]]:
    """
    Launch Chromium and open a page, reusing saved session state when available.

    Args:
        settings: Run settings

    Yields:
        (context, page)
    """
    playwright = await async_playwright().start()
    browser = None
    context = None
    try:
        browser = await playwright.chromium.launch(
            headless=settings.headless,
            args=['--no-sandbox', '--disable-dev-shm-usage']
        )

        state_path = settings.storage_state_path
        if state_path and state_path.exists():
            logger.info(f"Loading saved session state from {state_path}")
            context = await browser.new_context(storage_state=str(state_path))
        else:
            context = await browser.new_context()

        page = await context.new_page()
        logger.info("Browser initialized")
        yield context, page
    finally:
        if context:
            await context.close()
        if browser:
            await browser.close()
        await playwright.stop()
        logger.info("Browser closed")


class RevCompsSite:
    """Page interactions for a single entry run."""

    def __init__(self, page: Page, settings: RunSettings, context: Optional[BrowserContext] = None):
        self.page = page
        self.context = context
        self.settings = settings
        self.selectors: SiteSelectors = settings.selectors

    async def pause(self, window: Tuple[int, int]) -> None:
        delay = await sleep_random(self.page, window)
        logger.debug(f"Paused {delay}ms")

    async def open_home(self) -> None:
        await self.page.goto(self.settings.base_url)

    async def dismiss_cookie_banner(self) -> bool:
        """Accept cookies if the consent button is showing."""
        button = self.page.get_by_role('button', name=self.selectors.cookie_accept_button).first
        if not await button.is_visible():
            return False
        await button.click()
        return True

    async def needs_login(self) -> bool:
        return await self.page.get_by_role('link', name=self.selectors.login_link).first.is_visible()

    async def log_in(self, credentials: Credentials) -> None:
        """Open the login form, fill credentials and submit."""
        page = self.page
        pacing = self.settings.pacing

        await page.get_by_role('link', name=self.selectors.login_link).first.click()
        await self.pause(pacing.form_step)
        await page.get_by_role('textbox', name=self.selectors.username_field).fill(credentials.username)
        await self.pause(pacing.form_step)
        await page.get_by_role('textbox', name=self.selectors.password_field).fill(credentials.password)
        await self.pause(pacing.form_step)
        await page.get_by_role('button', name=self.selectors.login_button).click()

    async def wait_for_listings(self) -> None:
        await self.page.wait_for_selector(self.selectors.listing)

    async def save_session_state(self, path) -> None:
        if self.context is None:
            logger.warning("No browser context available, session state not saved")
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        await self.context.storage_state(path=str(path))

    async def has_free_filter(self) -> bool:
        return await self.page.locator(self.settings.filter.selector).first.is_visible()

    async def activate_free_filter(self) -> Optional[str]:
        """
        Activate the free-listings filter tab.

        Strategies are tried in configured order, each followed by a bounded
        wait for the tab's active state.

        Returns:
            Name of the strategy that took effect, or None
        """
        filter_settings: FilterSettings = self.settings.filter
        control = self.page.locator(filter_settings.selector).first
        active = self.page.locator(filter_settings.active_selector).first
        timeout = filter_settings.wait_timeout_ms
        for strategy in filter_settings.strategies:
            logger.debug(f"Activating free filter via {strategy}")
            try:
                if strategy == "click":
                    await control.click(timeout=timeout)
                elif strategy == "force_click":
                    await control.click(force=True, timeout=timeout)
                elif strategy == "dom_click":
                    await control.evaluate("element => element.click()")
                await active.wait_for(state='visible', timeout=timeout)
                return strategy
            except PlaywrightError as e:
                logger.debug(f"Free filter not active after {strategy}: {e}")
        return None

    async def extract_free_listings(self) -> List[Listing]:
        """Read title and url of every free listing, kept in page order."""
        items = self.page.locator(self.selectors.free_listing)
        count = await items.count()

        async def read(index: int) -> Listing:
            item = items.nth(index)
            title = clean_text(await item.locator(self.selectors.listing_title).inner_text())
            url = await item.locator(self.selectors.listing_link).get_attribute('href')
            return Listing(title=title, url=url or "")

        return list(await asyncio.gather(*(read(i) for i in range(count))))

    async def open_listing(self, url: str) -> None:
        await self.page.goto(url)

    async def held_marker(self) -> Optional[str]:
        """Return which "already committed" marker is visible, if any."""
        if await self.page.get_by_text(self.selectors.held_ticket_text, exact=False).first.is_visible():
            return HELD_TICKET
        if await self.page.get_by_text(self.selectors.limit_reached_text, exact=False).first.is_visible():
            return LIMIT_REACHED
        return None

    async def answer_question(self, answer: str) -> bool:
        """Select the qualifying answer when the listing asks a question."""
        question = self.page.locator(self.selectors.question_select)
        if await question.count() == 0:
            return False
        await question.select_option(answer)
        return True

    async def submit_entry(self) -> None:
        await self.page.locator(self.selectors.submit_entry).click()

    async def open_cart(self) -> None:
        await self.page.goto(self.settings.cart_url)

    async def proceed_to_checkout(self) -> None:
        await self.page.get_by_role('link', name=self.selectors.proceed_to_checkout).click()

    async def place_order(self) -> None:
        await self.page.locator(self.selectors.place_order).click()
