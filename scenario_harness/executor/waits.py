"""Wait conditions — suspend the scenario until the page reaches a state."""

from __future__ import annotations

import logging

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from scenario_harness.errors import ActionError, WaitTimeoutError
from scenario_harness.models.scenario import WaitCondition

from .context import BrowsingContext

logger = logging.getLogger(__name__)


async def wait_for_condition(ctx: BrowsingContext, condition: WaitCondition) -> None:
    """Block (cooperatively) until ``condition`` holds.

    Raises:
        WaitTimeoutError: the condition did not hold within its timeout.
    """
    timeout = condition.timeout_ms or ctx.config.default_timeout_ms
    page = ctx.page
    logger.debug("Waiting for %s %s (timeout %dms)",
                 condition.condition_type, condition.selector or "", timeout)

    try:
        match condition.condition_type:
            case "element_visible" | "element_hidden":
                if not condition.selector:
                    raise ActionError(f"{condition.condition_type} requires a selector",
                                      action_type=condition.condition_type)
                state = "visible" if condition.condition_type == "element_visible" else "hidden"
                await page.wait_for_selector(condition.selector, state=state, timeout=timeout)
            case "network_idle":
                await page.wait_for_load_state("networkidle", timeout=timeout)
            case _:
                raise ActionError(f"Unknown wait condition: {condition.condition_type}",
                                  action_type=condition.condition_type)
    except PlaywrightTimeoutError as e:
        what = condition.selector or "network"
        raise WaitTimeoutError(
            f"{condition.condition_type} on '{what}' timed out after {timeout}ms",
            timeout_ms=timeout,
        ) from e
    except PlaywrightError as e:
        raise ActionError(f"{condition.condition_type} failed: {e.message}",
                          action_type=condition.condition_type) from e
