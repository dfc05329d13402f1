"""Login form filling and post-submit state classification."""
from dataclasses import replace
from unittest.mock import AsyncMock, patch

import pytest

from fakes import FAST_TIMEOUTS, FakePage, make_settings
from labmirror.errors import LoginFailure
from labmirror.login import LoginState, classify_login_state, login

LOGIN_URL = "https://www.educoder.net/login"
HOME_URL = "https://www.educoder.net/"


def login_page(*extra: str) -> FakePage:
    return FakePage(visible=("#login", "#password", *extra), url=LOGIN_URL)


class TestClassify:
    @pytest.mark.asyncio
    async def test_error_marker(self):
        page = login_page(".ant-message-error")
        assert await classify_login_state(page, 100) is LoginState.ERROR

    @pytest.mark.asyncio
    async def test_captcha_marker(self):
        page = login_page(".geetest_widget")
        assert await classify_login_state(page, 100) is LoginState.CAPTCHA

    @pytest.mark.asyncio
    async def test_leaving_the_login_url_is_success(self):
        page = FakePage(url=HOME_URL + "users/someone")
        assert await classify_login_state(page, 100) is LoginState.SUCCESS

    @pytest.mark.asyncio
    async def test_nothing_happening_is_timeout(self):
        assert await classify_login_state(login_page(), 100) is LoginState.TIMEOUT


class TestLogin:
    @pytest.mark.asyncio
    async def test_fills_submits_and_confirms(self):
        settings = make_settings()
        page = login_page('button[type="submit"]')

        def on_click(key):
            page.url = HOME_URL

        page.on_click = on_click
        assert await login(page, settings, settings.target) is LoginState.SUCCESS
        assert page.filled == {"#login": "13812345678", "#password": "target-pass"}
        assert page.clicked == ['button[type="submit"]']

    @pytest.mark.asyncio
    async def test_post_submit_wait_uses_configured_timeout(self):
        settings = make_settings(timeouts=replace(FAST_TIMEOUTS, login_result=1234))
        page = login_page('button[type="submit"]')
        page.on_click = lambda key: setattr(page, "url", HOME_URL)
        classify = AsyncMock(return_value=LoginState.SUCCESS)
        with patch("labmirror.login.classify_login_state", new=classify):
            await login(page, settings, settings.target)
        assert classify.await_args.kwargs["timeout_ms"] == 1234

    @pytest.mark.asyncio
    async def test_missing_submit_control_fails(self):
        settings = make_settings()
        with pytest.raises(LoginFailure):
            await login(login_page(), settings, settings.target)

    @pytest.mark.asyncio
    async def test_missing_fields_fail(self):
        settings = make_settings()
        page = FakePage(url=LOGIN_URL)
        with pytest.raises(LoginFailure):
            await login(page, settings, settings.target)

    @pytest.mark.asyncio
    async def test_still_on_login_page_after_deadline_fails(self):
        settings = make_settings()
        page = login_page('button[type="submit"]')
        with pytest.raises(LoginFailure):
            await login(page, settings, settings.target)
