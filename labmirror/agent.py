"""One role's browser session turned into domain operations."""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from playwright.async_api import Page

from . import content, evaluation, labs, levels, login, navigation
from .config import Credentials, Settings
from .content import ExtractedContent
from .errors import SessionExpired
from .evaluation import NextStep
from .labs import LabListing

logger = logging.getLogger(__name__)


class Role(str, Enum):
    SOURCE = "source"
    TARGET = "target"


@dataclass
class SessionAgent:
    """
    Owns the active page for one role. Operations that can land on a new tab
    return that page; the agent stores it here and nowhere else.
    """

    role: Role
    credentials: Credentials
    page: Page
    settings: Settings

    def __str__(self) -> str:
        return f"{self.role.value}({self.credentials.masked()})"

    def _adopt(self, page: Page) -> Page:
        if page is not self.page:
            logger.info("[%s] active page is now %s", self.role.value, page.url)
            self.page = page
        return page

    async def login(self) -> None:
        logger.info("[%s] login", self.role.value)
        await login.login(self.page, self.settings, self.credentials)

    async def navigate_to_course(self, direct_url: Optional[str] = None) -> Page:
        try:
            page = await navigation.navigate_to_course(self.page, self.settings, direct_url)
        except SessionExpired as e:
            e.role = self.role.value
            raise
        return self._adopt(page)

    async def navigate_with_relogin(self, direct_url: Optional[str] = None) -> Page:
        """navigate_to_course; on SessionExpired log in again and retry the same call once."""
        try:
            return await self.navigate_to_course(direct_url)
        except SessionExpired as e:
            logger.warning("[%s] %s; logging in again", self.role.value, e)
        await self.login()
        return await self.navigate_to_course(direct_url)

    async def find_labs(self) -> LabListing:
        return await labs.find_labs(self.page, self.settings)

    async def open_lab_detail(self, lab_name: str) -> Page:
        return self._adopt(await navigation.open_lab_detail(self.page, lab_name, self.settings))

    async def enter_level(self) -> Page:
        return self._adopt(await levels.enter_level(self.page, self.settings))

    async def switch_to_level(self, index: int) -> bool:
        ok = await levels.switch_to_level(self.page, index, self.settings)
        if not ok:
            logger.warning("[%s] could not switch to level %d", self.role.value, index)
        return ok

    async def is_level_locked(self) -> bool:
        return await levels.is_level_locked(self.page)

    async def read_content(self) -> ExtractedContent:
        return await content.read_content(self.page, self.settings)

    async def write_content(self, value: ExtractedContent) -> None:
        await content.write_content(self.page, value)

    async def submit(self) -> None:
        await evaluation.submit_level(self.page, self.settings)

    async def wait_for_evaluation(self) -> str:
        return await evaluation.wait_for_evaluation(self.page, self.settings)

    async def go_to_next_level(self) -> NextStep:
        return await evaluation.go_to_next_level(self.page, self.settings)

    async def settle(self) -> None:
        await navigation.wait_for_network_idle(self.page, self.settings.timeouts.page_load)
