"""Course navigation, session expiry and re-login, and new-tab handling."""
from unittest.mock import AsyncMock, patch

import pytest

from fakes import FakePage, SessionPage, make_settings
from labmirror.agent import Role, SessionAgent
from labmirror.errors import NavigationFailure, SessionExpired
from labmirror.navigation import click_and_follow, ensure_logged_in, navigate_to_course, open_lab_detail

COURSE_URL = "https://www.educoder.net/classrooms/4M9R2KEK/shixun_homework"


class TestDirectNavigation:
    @pytest.mark.asyncio
    async def test_redirect_to_login_raises_session_expired(self):
        page = SessionPage()
        with pytest.raises(SessionExpired):
            await navigate_to_course(page, make_settings(), COURSE_URL)

    @pytest.mark.asyncio
    async def test_direct_url_when_logged_in(self):
        page = SessionPage()
        page.logged_in = True
        active = await navigate_to_course(page, make_settings(), COURSE_URL)
        assert active is page
        assert page.url == COURSE_URL

    @pytest.mark.asyncio
    async def test_login_controls_on_a_course_url_mean_expired(self):
        page = FakePage(visible=("input[type='password']",))
        with pytest.raises(SessionExpired):
            await ensure_logged_in(page, make_settings())


class TestReloginRetry:
    @pytest.mark.asyncio
    async def test_agent_relogs_in_and_retries_the_same_navigation(self):
        page = SessionPage()
        settings = make_settings()
        agent = SessionAgent(Role.TARGET, settings.target, page, settings)

        async def fake_login(p, s, creds):
            p.logged_in = True

        with patch("labmirror.login.login", new=AsyncMock(side_effect=fake_login)) as login:
            active = await agent.navigate_with_relogin(COURSE_URL)

        login.assert_awaited_once()
        assert active is page
        assert page.goto_calls == [COURSE_URL, COURSE_URL]
        assert page.url == COURSE_URL

    @pytest.mark.asyncio
    async def test_second_expiry_propagates_with_role(self):
        page = SessionPage()
        settings = make_settings()
        agent = SessionAgent(Role.SOURCE, settings.source, page, settings)

        with patch("labmirror.login.login", new=AsyncMock()):
            with pytest.raises(SessionExpired) as info:
                await agent.navigate_with_relogin(COURSE_URL)
        assert info.value.role == "source"


class TestNewTabs:
    @pytest.mark.asyncio
    async def test_click_that_opens_a_tab_returns_the_new_page(self):
        page = FakePage(visible=("#go",))
        new_tab = FakePage(url="https://www.educoder.net/shixuns/abc/challenges")
        page.on_click = lambda key: page.context.emit("page", new_tab)
        active = await click_and_follow(page, page.locator("#go"), 100, 0)
        assert active is new_tab
        assert page.context.listeners["page"] == []

    @pytest.mark.asyncio
    async def test_click_without_a_tab_keeps_the_page(self):
        page = FakePage(visible=("#go",))
        assert await click_and_follow(page, page.locator("#go"), 100, 0) is page

    @pytest.mark.asyncio
    async def test_agent_adopts_the_tab_opened_by_lab_detail(self):
        page = FakePage(visible=('a[href*="detail?tabs=1"]',))
        detail = FakePage(url="https://www.educoder.net/classrooms/abc/shixun_homework/1/detail?tabs=1")
        page.on_click = lambda key: page.context.emit("page", detail)
        settings = make_settings()
        agent = SessionAgent(Role.TARGET, settings.target, page, settings)
        assert await agent.open_lab_detail("K-means") is detail
        assert agent.page is detail

    @pytest.mark.asyncio
    async def test_lab_detail_failure_raises(self):
        with pytest.raises(NavigationFailure):
            await open_lab_detail(FakePage(), "K-means", make_settings())
