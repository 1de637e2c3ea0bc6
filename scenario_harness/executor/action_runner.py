"""Action runner — translates Action models to Playwright calls."""

from __future__ import annotations

import logging

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from scenario_harness.errors import ActionError, WaitTimeoutError
from scenario_harness.models.scenario import Action
from scenario_harness.url_utils import resolve_url

from .context import BrowsingContext

logger = logging.getLogger(__name__)

_WAIT_STATES = ("visible", "hidden", "attached", "detached")


def _require_selector(action: Action) -> str:
    if not action.selector:
        raise ActionError(
            f"{action.action_type} action requires a selector", action_type=action.action_type
        )
    return action.selector


async def run_action(ctx: BrowsingContext, action: Action, timeout: int | None = None) -> None:
    """Execute a single action against the attempt's page.

    Args:
        ctx: Browsing context of the current attempt.
        action: The action to execute.
        timeout: Selector timeout in milliseconds; defaults to the action's own
            ``timeout_ms`` and then the configured default.

    Raises:
        ActionError: the action could not be performed.
        WaitTimeoutError: an inline ``wait`` action timed out.
    """
    page = ctx.page
    timeout = action.timeout_ms or timeout or ctx.config.default_timeout_ms

    logger.debug("Running action: %s | selector=%s | value=%s | %s",
                 action.action_type, action.selector, action.value,
                 action.description or "")

    try:
        match action.action_type:
            case "navigate":
                url = resolve_url(ctx.config.base_url, action.value or action.selector or "")
                logger.debug("Navigating to %s...", url)
                await page.goto(url, wait_until="load", timeout=timeout)

            case "click":
                selector = _require_selector(action)
                await page.click(selector, timeout=timeout)

            case "fill":
                selector = _require_selector(action)
                await page.fill(selector, action.value or "", timeout=timeout)

            case "select":
                selector = _require_selector(action)
                logger.debug("Selecting '%s' in %s", action.value, selector)
                await page.select_option(selector, action.value or "", timeout=timeout)

            case "wait":
                selector = _require_selector(action)
                state = action.value or "visible"
                if state not in _WAIT_STATES:
                    raise ActionError(f"Unknown wait state: {state}", action_type="wait", selector=selector)
                try:
                    await page.wait_for_selector(selector, state=state, timeout=timeout)
                except PlaywrightTimeoutError as e:
                    raise WaitTimeoutError(
                        f"'{selector}' not {state} after {timeout}ms", timeout_ms=timeout
                    ) from e

            case "register_dialog_handler":
                ctx.register_dialog_handler(action.value or "accept")

            case "register_download_listener":
                ctx.register_download_listener()

            case _:
                raise ActionError(f"Unknown action type: {action.action_type}",
                                  action_type=action.action_type)
    except (ActionError, WaitTimeoutError):
        raise
    except PlaywrightError as e:
        raise ActionError(
            f"{action.action_type} failed: {e.message}",
            action_type=action.action_type,
            selector=action.selector,
        ) from e
    except ValueError as e:
        raise ActionError(str(e), action_type=action.action_type, selector=action.selector) from e
