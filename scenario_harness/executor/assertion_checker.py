"""Assertion checker — evaluates scenario assertions against page state."""

from __future__ import annotations

import asyncio
import logging
import re
import time
from typing import Optional

from playwright.async_api import Page

from scenario_harness.errors import NoDownloadObservedError, ScenarioError
from scenario_harness.models.scenario import Assertion

from .context import BrowsingContext

logger = logging.getLogger(__name__)

# Upper bound for an assertion to locate its element and for its value to settle.
ELEMENT_TIMEOUT_MS = 5000
POLL_INTERVAL_SECONDS = 0.1

# Reads style[prop], falling back to getPropertyValue for names the accessor lacks.
COMPUTED_STYLE_JS = """(el, prop) => {
  const style = window.getComputedStyle(el);
  const value = style[prop];
  return value === undefined ? style.getPropertyValue(prop) : value;
}"""


class AssertionResult:
    def __init__(self, passed: bool, message: str = "", actual: Optional[str] = None):
        self.passed = passed
        self.message = message
        self.actual = actual


async def check_assertion(ctx: BrowsingContext, assertion: Assertion) -> AssertionResult:
    """Evaluate a single assertion and return the result.

    Lookup failures are reported as a failed result. ``NoDownloadObservedError``
    propagates so the attempt is failed with that error type.
    """
    logger.debug("Checking assertion: %s", assertion.assertion_type)
    page = ctx.page
    try:
        match assertion.assertion_type:
            case "title_matches":
                return await _check_title_matches(page, assertion)
            case "text_equals":
                return await _check_text(ctx, assertion, lambda text, exp: text == exp)
            case "text_not_equals":
                return await _check_text(ctx, assertion, lambda text, exp: text != exp)
            case "text_contains":
                return await _check_text(ctx, assertion, lambda text, exp: exp in text)
            case "has_class":
                return await _check_has_class(ctx, assertion)
            case "is_visible":
                return await _check_is_visible(ctx, assertion)
            case "count_greater_than":
                return await _check_count_greater_than(page, assertion)
            case "css_property_equals":
                return await _check_css_property(ctx, assertion)
            case "download_filename_matches":
                return await _check_download_filename(ctx, assertion)
            case "console_errors_excluding":
                return _check_console_errors(ctx.collector.console_errors, assertion)
            case _:
                return AssertionResult(False, f"Unknown assertion type: {assertion.assertion_type}")
    except ScenarioError:
        raise
    except Exception as e:
        return AssertionResult(False, f"Assertion error: {e}")


def _element_timeout(ctx: BrowsingContext) -> int:
    return min(ELEMENT_TIMEOUT_MS, ctx.config.default_timeout_ms)


async def _poll(read, predicate, timeout_ms: int) -> tuple[bool, str]:
    """Re-read a value until ``predicate`` holds or ``timeout_ms`` elapses.

    Returns whether the predicate held and the last value read.
    """
    deadline = time.monotonic() + timeout_ms / 1000
    while True:
        value = await read()
        if predicate(value):
            return True, value
        if time.monotonic() >= deadline:
            return False, value
        await asyncio.sleep(POLL_INTERVAL_SECONDS)


async def _check_title_matches(page: Page, assertion: Assertion) -> AssertionResult:
    if not assertion.expected_value:
        return AssertionResult(False, "No title pattern")
    title = await page.title()
    if re.search(assertion.expected_value, title):
        return AssertionResult(True, f"Title matches: {title}", actual=title)
    return AssertionResult(
        False, f"Title '{title}' doesn't match /{assertion.expected_value}/", actual=title
    )


async def _check_text(ctx: BrowsingContext, assertion: Assertion, predicate) -> AssertionResult:
    if not assertion.selector or assertion.expected_value is None:
        return AssertionResult(False, "Missing selector or expected_value")
    timeout = _element_timeout(ctx)
    expected = assertion.expected_value

    async def read_text() -> str:
        el = await ctx.page.wait_for_selector(assertion.selector, timeout=timeout)
        return (await el.text_content() or "").strip() if el else ""

    ok, text = await _poll(read_text, lambda t: predicate(t, expected), timeout)
    if ok:
        return AssertionResult(True, f"Text ok: '{text}'", actual=text)
    match assertion.assertion_type:
        case "text_not_equals":
            msg = f"Expected text other than '{expected}', got '{text}'"
        case "text_contains":
            msg = f"'{expected}' not in '{text}'"
        case _:
            msg = f"Expected '{expected}', got '{text}'"
    return AssertionResult(False, msg, actual=text)


async def _check_has_class(ctx: BrowsingContext, assertion: Assertion) -> AssertionResult:
    if not assertion.selector or not assertion.expected_value:
        return AssertionResult(False, "Missing selector or class name")
    timeout = _element_timeout(ctx)

    async def read_classes() -> str:
        el = await ctx.page.wait_for_selector(assertion.selector, timeout=timeout)
        return (await el.get_attribute("class") or "") if el else ""

    ok, classes = await _poll(read_classes, lambda c: assertion.expected_value in c.split(), timeout)
    if ok:
        return AssertionResult(True, f"Has class '{assertion.expected_value}'", actual=classes)
    return AssertionResult(
        False, f"Class '{assertion.expected_value}' not in '{classes}'", actual=classes
    )


async def _check_is_visible(ctx: BrowsingContext, assertion: Assertion) -> AssertionResult:
    if not assertion.selector:
        return AssertionResult(False, "No selector for is_visible")
    try:
        el = await ctx.page.wait_for_selector(
            assertion.selector, state="visible", timeout=_element_timeout(ctx)
        )
        if el:
            return AssertionResult(True, f"Element '{assertion.selector}' is visible", actual="visible")
        return AssertionResult(False, f"Element '{assertion.selector}' not visible", actual="hidden")
    except Exception:
        return AssertionResult(False, f"Element '{assertion.selector}' not found/visible", actual="hidden")


async def _check_count_greater_than(page: Page, assertion: Assertion) -> AssertionResult:
    if not assertion.selector or assertion.count is None:
        return AssertionResult(False, "Missing selector or count")
    elements = await page.query_selector_all(assertion.selector)
    actual = len(elements)
    if actual > assertion.count:
        return AssertionResult(True, f"Found {actual} elements", actual=str(actual))
    return AssertionResult(
        False, f"Expected more than {assertion.count} elements, found {actual}", actual=str(actual)
    )


async def _check_css_property(ctx: BrowsingContext, assertion: Assertion) -> AssertionResult:
    if not assertion.selector or not assertion.property_name or assertion.expected_value is None:
        return AssertionResult(False, "Missing selector, property_name or expected_value")
    timeout = _element_timeout(ctx)

    async def read_property() -> str:
        el = await ctx.page.wait_for_selector(assertion.selector, timeout=timeout)
        value = await el.evaluate(COMPUTED_STYLE_JS, assertion.property_name)
        return (value or "").strip()

    ok, value = await _poll(read_property, lambda v: v == assertion.expected_value, timeout)
    if ok:
        return AssertionResult(True, f"{assertion.property_name} is '{value}'", actual=value)
    return AssertionResult(
        False,
        f"Expected {assertion.property_name} '{assertion.expected_value}', got '{value}'",
        actual=value,
    )


async def _check_download_filename(ctx: BrowsingContext, assertion: Assertion) -> AssertionResult:
    if not assertion.expected_value:
        return AssertionResult(False, "No filename pattern")
    if ctx.download_listener is None:
        raise NoDownloadObservedError("No download listener was registered before the download")
    download = await ctx.download_listener.latest(ctx.config.default_timeout_ms)
    name = download.suggested_filename
    if re.search(assertion.expected_value, name):
        return AssertionResult(True, f"Downloaded '{name}'", actual=name)
    return AssertionResult(
        False, f"Download '{name}' doesn't match /{assertion.expected_value}/", actual=name
    )


def _check_console_errors(console_errors: list[str], assertion: Assertion) -> AssertionResult:
    remaining = [
        err for err in console_errors
        if not any(re.search(p, err) for p in assertion.ignore_patterns)
    ]
    if len(remaining) <= assertion.max_allowed:
        return AssertionResult(True, f"{len(remaining)} console error(s)", actual=str(len(remaining)))
    return AssertionResult(
        False,
        f"{len(remaining)} console error(s), at most {assertion.max_allowed} allowed: "
        f"{remaining[0][:100]}",
        actual=str(len(remaining)),
    )
