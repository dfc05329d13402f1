"""
Lab traversal: drive the source and target agents through login, course entry,
lab discovery and the per-level copy loop.

Each state handler does one step and returns the next state. Steps that touch
both roles go through `paired`, which waits for both sides before anything
branches on either result.
"""
import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Optional, Union

from playwright.async_api import Error as PlaywrightError

from .agent import SessionAgent
from .config import Settings
from .content import ExtractedContent, SkipContent, SkipReason
from .errors import ElementNotFound, EvaluationAmbiguous, ExtractionFailure
from .evaluation import PASSED, NextStep
from .metrics import ExperimentStatus, LevelStatus, RunReporter, RunSummary

logger = logging.getLogger(__name__)


class State(str, Enum):
    LOGIN = "LOGIN"
    ENTER_COURSE = "ENTER_COURSE"
    FIND_LAB = "FIND_LAB"
    OPEN_DETAIL = "OPEN_DETAIL"
    ENTER_LEVEL = "ENTER_LEVEL"
    SYNC_LEVEL_0 = "SYNC_LEVEL_0"
    LEVEL_LOOP = "LEVEL_LOOP"
    RETURN_TO_LIST = "RETURN_TO_LIST"
    DONE = "DONE"


async def paired(source_step: Awaitable[Any], target_step: Awaitable[Any]) -> tuple[Any, Any]:
    """Run both steps together; once both have settled, re-raise the first error if any."""
    results = await asyncio.gather(source_step, target_step, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return results[0], results[1]


class LabTraversal:
    def __init__(self, source: SessionAgent, target: SessionAgent, reporter: RunReporter, settings: Settings):
        self.source = source
        self.target = target
        self.reporter = reporter
        self.settings = settings
        self.state = State.LOGIN
        self.lab_name: Optional[str] = None
        self.level = 0
        self.attempted: set[str] = set()
        self._handlers = {
            State.LOGIN: self.login,
            State.ENTER_COURSE: self.enter_course,
            State.FIND_LAB: self.find_lab,
            State.OPEN_DETAIL: self.open_detail,
            State.ENTER_LEVEL: self.enter_level,
            State.SYNC_LEVEL_0: self.sync_level_0,
            State.LEVEL_LOOP: self.level_loop,
            State.RETURN_TO_LIST: self.return_to_list,
        }

    async def run(self, start: State = State.LOGIN) -> RunSummary:
        """Run until no incomplete lab is left. Errors propagate; the reporter keeps what was recorded."""
        self.state = start
        while self.state is not State.DONE:
            logger.debug("State: %s", self.state.value)
            self.state = await self._handlers[self.state]()
        logger.info("All labs processed")
        return self.reporter.generate_report()

    async def _buffer(self) -> None:
        await asyncio.sleep(self.settings.timeouts.level_buffer / 1000)

    # ---- session setup ----

    async def login(self) -> State:
        await paired(self.source.login(), self.target.login())
        return State.ENTER_COURSE

    async def enter_course(self) -> State:
        await paired(self.source.navigate_with_relogin(), self.target.navigate_with_relogin())
        return State.FIND_LAB

    # ---- experiment lifecycle ----

    async def find_lab(self) -> State:
        listing = await self.target.find_labs()
        for entry in listing.completed:
            self.reporter.note_completed(entry.name)
        remaining = [e for e in listing.incomplete if e.name not in self.attempted]
        for entry in remaining:
            self.reporter.register_pending(entry.name)
        skipped = len(listing.incomplete) - len(remaining)
        if skipped:
            logger.info("Ignoring %d incomplete lab(s) already attempted this run", skipped)
        if not remaining:
            logger.info("Target account has no incomplete labs left")
            return State.DONE
        self.lab_name = remaining[0].name
        self.attempted.add(self.lab_name)
        logger.info("Next lab: %s", self.lab_name)
        return State.OPEN_DETAIL

    async def open_detail(self) -> State:
        self.reporter.start_experiment(self.lab_name)
        await paired(self.source.open_lab_detail(self.lab_name), self.target.open_lab_detail(self.lab_name))
        return State.ENTER_LEVEL

    async def enter_level(self) -> State:
        await paired(self.source.enter_level(), self.target.enter_level())
        await paired(self.source.settle(), self.target.settle())
        return State.SYNC_LEVEL_0

    async def sync_level_0(self) -> State:
        source_ok, target_ok = await paired(self.source.switch_to_level(1), self.target.switch_to_level(1))
        if not (source_ok and target_ok):
            logger.warning("Level 1 sync incomplete (source=%s target=%s); continuing", source_ok, target_ok)
        self.level = 1
        return State.LEVEL_LOOP

    async def level_loop(self) -> State:
        status = await self.run_level(self.level)
        if status is not None:
            self.reporter.end_experiment(status)
            return State.RETURN_TO_LIST
        self.level += 1
        return State.LEVEL_LOOP

    async def return_to_list(self) -> State:
        url = self.settings.course_url
        logger.info("Returning to the lab list%s", f" via {url}" if url else "")
        await paired(self.source.navigate_with_relogin(url), self.target.navigate_with_relogin(url))
        await self._buffer()
        return State.FIND_LAB

    # ---- one level ----

    async def run_level(self, index: int) -> Optional[ExperimentStatus]:
        """PreBuffer, ReadSource, CheckTargetLocked, Skip or Copy, Advance. Returns a status to end the lab."""
        logger.info("--- %s: level %d ---", self.lab_name, index)
        await self._buffer()

        read = await self.read_source()
        if await self.target.is_level_locked():
            logger.warning("Target level %d is locked; abandoning this lab", index)
            return ExperimentStatus.LOCKED

        if isinstance(read, SkipContent):
            if read.reason is SkipReason.LEVEL_LOCKED:
                logger.warning("Source level %d is locked; abandoning this lab", index)
                return ExperimentStatus.LOCKED
            self.reporter.record_level(index, LevelStatus.SKIPPED, read.reason.value)
            return await self.skip_level(index)

        if isinstance(read, ExtractionFailure):
            self.reporter.record_level(index, LevelStatus.FAILED, f"source read failed: {read}")
        else:
            status, detail = await self.copy_level(read)
            self.reporter.record_level(index, status, detail)
        return await self.advance(index)

    async def read_source(self) -> Union[ExtractedContent, ExtractionFailure]:
        try:
            return await self.source.read_content()
        except ExtractionFailure as e:
            logger.error("Could not read source level: %s", e)
            return e

    async def copy_level(self, value: ExtractedContent) -> tuple[LevelStatus, str]:
        """Write, submit, wait. Level-scoped errors come back as FAILED."""
        try:
            await self.target.write_content(value)
            await self.target.submit()
            verdict = await self.target.wait_for_evaluation()
        except ElementNotFound as e:
            return LevelStatus.FAILED, str(e)
        except EvaluationAmbiguous as e:
            return LevelStatus.FAILED, f"ambiguous: {e}"
        except PlaywrightError as e:
            logger.error("Target page error while copying: %s", e)
            return LevelStatus.FAILED, f"page error: {e}"
        if verdict == PASSED:
            return LevelStatus.PASSED, ""
        return LevelStatus.FAILED, "evaluation failed"

    async def skip_level(self, index: int) -> Optional[ExperimentStatus]:
        """Force both sides to the next level; the target may fall back to its next control."""
        nxt = index + 1
        source_ok, target_ok = await paired(self.source.switch_to_level(nxt), self.target.switch_to_level(nxt))
        if not target_ok:
            logger.info("Target cannot switch to level %d directly; trying its next control", nxt)
            step = await self.target.go_to_next_level()
            if step is not NextStep.ADVANCED:
                return ExperimentStatus.COMPLETED_SKIP
        if not source_ok:
            status = await self._catch_up_source(index)
            if status is not None:
                return status
        await self._buffer()
        return None

    async def advance(self, index: int) -> Optional[ExperimentStatus]:
        """Source switches directly; target uses its next control, falling back to a direct switch."""
        nxt = index + 1
        source_ok, step = await paired(self.source.switch_to_level(nxt), self.target.go_to_next_level())
        if step is NextStep.COMPLETED:
            return ExperimentStatus.COMPLETED
        if step is not NextStep.ADVANCED:
            logger.info("Target has no next control; switching to level %d directly", nxt)
            if not await self.target.switch_to_level(nxt):
                return ExperimentStatus.COMPLETED_OR_STUCK

        if not source_ok:
            status = await self._catch_up_source(index)
            if status is not None:
                return status

        await paired(self.source.settle(), self.target.settle())
        await self._buffer()
        return None

    async def _catch_up_source(self, index: int) -> Optional[ExperimentStatus]:
        logger.warning("Source could not switch to level %d; trying its next control", index + 1)
        if await self.source.go_to_next_level() is NextStep.ADVANCED:
            return None
        self.reporter.record_divergence(index + 1)
        if not self.settings.tolerate_divergence:
            return ExperimentStatus.COMPLETED_OR_STUCK
        return None
