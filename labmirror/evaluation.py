"""Submitting a level, waiting for its verdict, and moving past the result popup."""
import logging
from enum import Enum

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from .config import Settings
from .errors import ElementNotFound, EvaluationAmbiguous
from .locator import is_present, marker_probes, race, resolve
from .navigation import wait_for_network_idle
from .site import (
    EVALUATE_BUTTON,
    EVALUATION_FAILURE,
    EVALUATION_SUCCESS,
    NEXT_LEVEL,
    NEXT_OR_COMPLETE,
    RESULT_POPUP_BODY,
    RESULT_POPUP_CLOSE,
)

logger = logging.getLogger(__name__)

PASSED = "PASSED"
FAILED = "FAILED"


class NextStep(str, Enum):
    ADVANCED = "ADVANCED"
    COMPLETED = "COMPLETED"
    UNAVAILABLE = "UNAVAILABLE"


async def submit_level(page: Page, settings: Settings) -> None:
    """Click the evaluate button. Raises ElementNotFound if the page has none or it won't take a click."""
    t = settings.timeouts
    match = await resolve(page, EVALUATE_BUTTON, timeout_ms=t.element_wait, probe_ms=min(t.probe, 2000))
    if not match:
        raise ElementNotFound("evaluate-button", page.url)
    try:
        await match.locator.scroll_into_view_if_needed()
        await match.locator.click(timeout=t.click)
    except PlaywrightError as e:
        raise ElementNotFound("evaluate-button", f"{match.descriptor.describe()} not clickable: {e}") from e
    logger.info("Submitted for evaluation via %s", match.descriptor.describe())


async def wait_for_evaluation(page: Page, settings: Settings) -> str:
    """
    Race success markers against failure markers. On a timeout with neither, a visible
    "next level" control still counts as a pass; otherwise EvaluationAmbiguous is raised.
    """
    timeout_ms = settings.timeouts.evaluation
    logger.info("Waiting for evaluation result (up to %ss)", timeout_ms // 1000)
    probes = marker_probes(page, PASSED, EVALUATION_SUCCESS, timeout_ms)
    probes += marker_probes(page, FAILED, EVALUATION_FAILURE, timeout_ms)
    outcome = await race(probes, timeout_ms=timeout_ms)
    if outcome == PASSED:
        logger.info("Evaluation passed")
        return PASSED
    if outcome == FAILED:
        logger.warning("Evaluation failed")
        return FAILED

    if await is_present(page, NEXT_LEVEL, probe_ms=1000):
        logger.info("Evaluation timed out but a next-level control is visible; counting as passed")
        return PASSED
    raise EvaluationAmbiguous(f"no evaluation verdict within {timeout_ms}ms on {page.url}")


async def dismiss_result_popup(page: Page, settings: Settings) -> bool:
    """Close the evaluation result popup if one shows up. Returns True if one was closed."""
    t = settings.timeouts
    try:
        await page.wait_for_selector(RESULT_POPUP_BODY, state="visible", timeout=t.popup)
    except PlaywrightError:
        logger.debug("No result popup within %ss", t.popup // 1000)
        return False
    close = await resolve(page, RESULT_POPUP_CLOSE, timeout_ms=t.probe, probe_ms=t.probe)
    if not close:
        logger.debug("Result popup has no close control")
        return False
    try:
        await close.locator.click(timeout=t.click)
        await close.locator.wait_for(state="hidden", timeout=5000)
    except PlaywrightError as e:
        logger.warning("Result popup did not close cleanly: %s", e)
        return False
    logger.info("Closed result popup")
    await page.wait_for_timeout(1000)
    return True


async def go_to_next_level(page: Page, settings: Settings) -> NextStep:
    """Use the page's own controls: "complete" ends the lab, "next level" advances."""
    t = settings.timeouts
    await dismiss_result_popup(page, settings)

    match = await resolve(page, NEXT_OR_COMPLETE, timeout_ms=t.probe * len(NEXT_OR_COMPLETE), probe_ms=t.probe)
    if not match:
        logger.warning("No next-level or complete control on %s", page.url)
        return NextStep.UNAVAILABLE
    if match.kind == "complete-marker":
        logger.info("Lab complete marker found")
        return NextStep.COMPLETED

    try:
        await match.locator.scroll_into_view_if_needed()
        await match.locator.click(timeout=t.click)
    except PlaywrightError as e:
        logger.warning("Next-level click failed: %s", e)
        return NextStep.UNAVAILABLE
    logger.info("Clicked next level via %s", match.descriptor.describe())
    await page.wait_for_timeout(5000)
    await wait_for_network_idle(page, t.page_load)
    return NextStep.ADVANCED
