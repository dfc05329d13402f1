"""Login: open the form, fill credentials, classify the post-submit state."""
import logging
from enum import Enum
from typing import Any

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page

from .config import Credentials, Settings
from .errors import LoginFailure
from .locator import click_first, marker_probes, race, resolve
from .site import (
    ACCOUNT_LOGIN_TAB,
    CAPTCHA_MARKERS,
    HOME_LOGIN_BUTTON,
    LOGIN_ERROR_MARKERS,
    LOGIN_FORM,
    LOGIN_SUBMIT,
    LOGIN_SUCCESS_MARKERS,
    PASSWORD_FIELD,
    USERNAME_FIELD,
    is_login_url,
)

logger = logging.getLogger(__name__)


class LoginState(str, Enum):
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"
    CAPTCHA = "CAPTCHA"
    TIMEOUT = "TIMEOUT"


def _left_login(url: str) -> bool:
    return not is_login_url(url) and "login" not in url


def _success_probes(page: Page, timeout_ms: int) -> list[tuple[str, Any]]:
    probes = marker_probes(page, LoginState.SUCCESS.value, LOGIN_SUCCESS_MARKERS, timeout_ms)
    probes.append((LoginState.SUCCESS.value, page.wait_for_url(_left_login, timeout=timeout_ms)))
    return probes


async def classify_login_state(page: Page, timeout_ms: int) -> LoginState:
    """Race success, error and captcha markers; TIMEOUT when none shows up."""
    probes = _success_probes(page, timeout_ms)
    probes += marker_probes(page, LoginState.ERROR.value, LOGIN_ERROR_MARKERS, timeout_ms)
    probes += marker_probes(page, LoginState.CAPTCHA.value, CAPTCHA_MARKERS, timeout_ms)
    outcome = await race(probes, timeout_ms=timeout_ms)
    return LoginState(outcome) if outcome else LoginState.TIMEOUT


async def open_login_form(page: Page, settings: Settings) -> None:
    """Make sure a login form is on screen, navigating to it if needed."""
    t = settings.timeouts
    if is_login_url(page.url):
        logger.info("Already on a login page")
    else:
        await page.goto(settings.login_url, wait_until="domcontentloaded", timeout=t.page_load)
        if not is_login_url(settings.login_url):
            clicked = await click_first(
                page, HOME_LOGIN_BUTTON, timeout_ms=t.probe * 2, probe_ms=t.probe, click_timeout_ms=t.click
            )
            if not clicked:
                logger.warning("Home page login entry not found; looking for the form directly")

    outcome = await race(marker_probes(page, "form", LOGIN_FORM, t.probe + 2000), timeout_ms=t.probe + 2000)
    if outcome is None:
        logger.warning("Login form container did not show up; trying the fields directly")

    tab = await resolve(page, ACCOUNT_LOGIN_TAB, timeout_ms=1000, probe_ms=500)
    if tab:
        logger.info("Switching to account/password login")
        try:
            await tab.locator.click(timeout=t.click)
            await page.wait_for_timeout(500)
        except PlaywrightError as e:
            logger.debug("Account tab click failed: %s", e)


async def _log_visible_buttons(page: Page, limit: int = 10) -> None:
    try:
        texts = await page.evaluate(
            """(limit) => Array.from(document.querySelectorAll('button')).slice(0, limit).map(b =>
                `type=${b.getAttribute('type')} class=${b.getAttribute('class')} text=${(b.innerText || '').trim()}`)""",
            limit,
        )
    except PlaywrightError:
        return
    for line in texts or []:
        logger.debug("  button: %s", line)


async def login(page: Page, settings: Settings, credentials: Credentials) -> LoginState:
    """
    Log `credentials` in on `page`. Captcha pauses for an operator, a credential error
    waits out a grace period; either way the final check must see a logged-in page
    before the deadline or LoginFailure is raised.
    """
    t = settings.timeouts
    logger.info("Logging in %s", credentials.masked())
    await open_login_form(page, settings)

    user_field = await resolve(page, USERNAME_FIELD, timeout_ms=t.element_wait, probe_ms=t.probe)
    pass_field = await resolve(page, PASSWORD_FIELD, timeout_ms=t.element_wait, probe_ms=t.probe)
    if not user_field or not pass_field:
        raise LoginFailure(f"login form fields not found for {credentials.masked()}")

    await user_field.locator.fill(credentials.username)
    await pass_field.locator.fill(credentials.password)
    await page.wait_for_timeout(800)

    submit = await click_first(page, LOGIN_SUBMIT, timeout_ms=t.element_wait, probe_ms=t.probe, click_timeout_ms=t.click)
    if not submit:
        await _log_visible_buttons(page)
        raise LoginFailure("login submit button not found")
    logger.debug("Submitted login via %s", submit.descriptor.describe())

    state = await classify_login_state(page, timeout_ms=t.login_result)
    logger.info("Post-submit login state: %s", state.value)

    if state is LoginState.CAPTCHA:
        logger.warning("Captcha detected; solve it in the browser window (waiting up to %ss)", t.captcha // 1000)
        probes = marker_probes(page, "cleared", CAPTCHA_MARKERS, t.captcha, state="hidden")
        probes += _success_probes(page, t.captcha)
        await race(probes, timeout_ms=t.captcha)
    elif state is LoginState.ERROR:
        error = await resolve(page, LOGIN_ERROR_MARKERS, timeout_ms=1000, probe_ms=500)
        if error:
            try:
                logger.error("Login error: %s", (await error.locator.text_content() or "").strip())
            except PlaywrightError:
                pass
        logger.warning("Fix the login in the browser window; waiting %ss", t.login_error_grace // 1000)
        await page.wait_for_timeout(t.login_error_grace)

    # Final check: form gone, avatar shown, "my training" visible, or URL left login
    final = _success_probes(page, t.login_deadline)
    if not is_login_url(page.url):
        # Modal login: the popup closing is enough. On a login page "hidden" would pass at once.
        final += marker_probes(page, "ok", LOGIN_FORM[:1], t.login_deadline, state="hidden")
    if await race(final, timeout_ms=t.login_deadline) is None:
        raise LoginFailure(f"login for {credentials.masked()} did not complete within {t.login_deadline}ms")
    logger.info("Logged in %s", credentials.masked())
    await page.wait_for_timeout(2000)
    return LoginState.SUCCESS
