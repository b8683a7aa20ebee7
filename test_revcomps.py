#!/usr/bin/env python3
"""
Tests for the RevComps page driver against a scripted page.
"""

import asyncio

import pytest
from playwright.async_api import Error as PlaywrightError, TimeoutError as PlaywrightTimeoutError

from revcomps_entry.core.listing import Listing
from revcomps_entry.integrations.revcomps import HELD_TICKET, LIMIT_REACHED, RevCompsSite
from revcomps_entry.utils.config import Credentials, RunSettings


class FakeLocator:
    """Locator stand-in; behaviour comes from the owning FakePage."""

    def __init__(self, page, key):
        self.page = page
        self.key = key

    @property
    def first(self):
        return self

    async def is_visible(self):
        return self.key in self.page.visible

    async def count(self):
        return self.page.counts.get(self.key, 0)

    async def click(self, force=False, timeout=None):
        action = 'force_click' if force else 'click'
        self.page.actions.append((action, self.key))
        self.page.raise_for(action)

    async def evaluate(self, script):
        self.page.actions.append(('dom_click', self.key))
        self.page.raise_for('dom_click')

    async def wait_for(self, state='visible', timeout=None):
        last_action = self.page.actions[-1][0]
        if last_action != self.page.activates_on:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {self.key}")

    async def fill(self, value):
        self.page.actions.append(('fill', self.key, value))

    async def select_option(self, value):
        self.page.actions.append(('select_option', self.key, value))

    def nth(self, index):
        return FakeCard(self.page.cards[index])


class FakeCard:
    """A listing card whose fields resolve after a delay."""

    def __init__(self, card):
        self.card = card

    def locator(self, selector):
        return self

    async def inner_text(self):
        title, _, delay = self.card
        await asyncio.sleep(delay)
        return title

    async def get_attribute(self, name):
        _, url, delay = self.card
        await asyncio.sleep(delay)
        return url


class FakePage:
    def __init__(self, visible=(), counts=None, cards=(), activates_on=None, errors=None):
        self.visible = set(visible)
        self.counts = counts or {}
        self.cards = list(cards)
        self.activates_on = activates_on
        self.errors = errors or {}
        self.actions = []
        self.waited = []

    def raise_for(self, action):
        if action in self.errors:
            raise self.errors[action]

    def locator(self, selector):
        return FakeLocator(self, selector)

    def get_by_text(self, text, exact=False):
        return FakeLocator(self, text)

    def get_by_role(self, role, name=None):
        return FakeLocator(self, f"{role}:{name}")

    async def wait_for_timeout(self, delay):
        self.waited.append(delay)


@pytest.fixture()
def settings(tmp_path):
    return RunSettings(
        credentials=Credentials(username="player", password="secret"),
        result_path=tmp_path / "result.json",
    )


def strategies_tried(page):
    return [action for action, *_ in page.actions if action in ('click', 'force_click', 'dom_click')]


def test_filter_strategies_run_in_order_and_give_up(settings):
    page = FakePage(visible=[settings.filter.selector])
    site = RevCompsSite(page, settings)

    assert asyncio.run(site.has_free_filter()) is True
    assert asyncio.run(site.activate_free_filter()) is None
    assert strategies_tried(page) == ['click', 'force_click', 'dom_click']


def test_filter_stops_at_first_strategy_that_works(settings):
    page = FakePage(activates_on='force_click')
    site = RevCompsSite(page, settings)

    assert asyncio.run(site.activate_free_filter()) == 'force_click'
    assert strategies_tried(page) == ['click', 'force_click']


def test_filter_strategy_errors_are_not_fatal(settings):
    page = FakePage(
        activates_on='dom_click',
        errors={'force_click': PlaywrightError("Element is not visible")},
    )
    site = RevCompsSite(page, settings)

    assert asyncio.run(site.activate_free_filter()) == 'dom_click'
    assert strategies_tried(page) == ['click', 'force_click', 'dom_click']


def test_missing_filter_control(settings):
    site = RevCompsSite(FakePage(), settings)

    assert asyncio.run(site.has_free_filter()) is False


@pytest.mark.parametrize("visible, expected", [
    (["YOU HAVE 1 TICKET ON THIS PRIZE"], HELD_TICKET),
    (["You cannot purchase anymore tickets"], LIMIT_REACHED),
    (["YOU HAVE 1 TICKET ON THIS PRIZE", "You cannot purchase anymore tickets"], HELD_TICKET),
    ([], None),
])
def test_held_marker(settings, visible, expected):
    site = RevCompsSite(FakePage(visible=visible), settings)

    assert asyncio.run(site.held_marker()) == expected


def test_answer_question_skipped_without_select(settings):
    page = FakePage()
    site = RevCompsSite(page, settings)

    assert asyncio.run(site.answer_question("london")) is False
    assert page.actions == []


def test_answer_question_selects_answer(settings):
    page = FakePage(counts={"#question_select": 1})
    site = RevCompsSite(page, settings)

    assert asyncio.run(site.answer_question("london")) is True
    assert page.actions == [('select_option', '#question_select', 'london')]


def test_extract_free_listings_keeps_page_order(settings):
    free_selector = settings.selectors.free_listing
    page = FakePage(
        counts={free_selector: 3},
        cards=[
            ("  Win a\n PS5 ", "https://www.revcomps.com/ps5/", 0.03),
            ("Win 500 Cash", "https://www.revcomps.com/cash/", 0.02),
            ("No link", None, 0.0),
        ],
    )
    site = RevCompsSite(page, settings)

    listings = asyncio.run(site.extract_free_listings())

    assert listings == [
        Listing("Win a PS5", "https://www.revcomps.com/ps5/"),
        Listing("Win 500 Cash", "https://www.revcomps.com/cash/"),
        Listing("No link", ""),
    ]


def test_cookie_banner_dismissed_only_when_visible(settings):
    hidden = FakePage()
    shown = FakePage(visible=["button:Accept All"])

    assert asyncio.run(RevCompsSite(hidden, settings).dismiss_cookie_banner()) is False
    assert asyncio.run(RevCompsSite(shown, settings).dismiss_cookie_banner()) is True
    assert shown.actions == [('click', 'button:Accept All')]


def test_log_in_fills_credentials_with_pacing(settings):
    page = FakePage()
    site = RevCompsSite(page, settings)

    asyncio.run(site.log_in(settings.credentials))

    assert page.actions == [
        ('click', 'link:Log In'),
        ('fill', 'textbox:Username or Email Address', 'player'),
        ('fill', 'textbox:Password', 'secret'),
        ('click', 'button:Log In'),
    ]
    low, high = settings.pacing.form_step
    assert len(page.waited) == 3
    assert all(low <= delay <= high for delay in page.waited)
