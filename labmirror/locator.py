"""Ordered-fallback element resolution: first descriptor that matches wins."""
import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Optional, Sequence, Union

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Locator

logger = logging.getLogger(__name__)

VISIBLE = "visible"
ATTACHED = "attached"

TextMatch = Union[str, "re.Pattern[str]"]


@dataclass(frozen=True)
class ElementDescriptor:
    """
    One route to a semantic element. `selector` is Playwright selector text; `has_text`
    and `has` narrow it like Locator.filter(). `role`/`name` switch to get_by_role().
    """

    kind: str
    selector: str = ""
    has_text: Optional[TextMatch] = None
    has: Optional[str] = None
    role: Optional[str] = None
    name: Optional[TextMatch] = None
    label: str = ""

    def all_in(self, session: Any) -> Locator:
        """Locator for every element this descriptor matches (not narrowed to one)."""
        if self.role:
            loc = session.get_by_role(self.role, name=self.name) if self.name else session.get_by_role(self.role)
        else:
            loc = session.locator(self.selector)
        if self.has_text is not None:
            loc = loc.filter(has_text=self.has_text)
        if self.has:
            loc = loc.filter(has=session.locator(self.has))
        return loc

    def locate(self, session: Any) -> Locator:
        return self.all_in(session).first

    def locate_in_state(self, session: Any, mode: str = VISIBLE) -> Locator:
        """First match in `mode`. For VISIBLE that is the first visible match, not match 0."""
        loc = self.all_in(session)
        if mode == VISIBLE:
            loc = loc.locator("visible=true")
        return loc.first

    def describe(self) -> str:
        if self.label:
            return self.label
        if self.role:
            return f"role={self.role} name={self.name!r}"
        extra = f" has_text={self.has_text!r}" if self.has_text is not None else ""
        return f"{self.selector}{extra}"

    def format(self, **values: str) -> "ElementDescriptor":
        """Fill `{placeholders}` in selector/has_text, e.g. a lab or course name."""
        has_text = self.has_text.format(**values) if isinstance(self.has_text, str) else self.has_text
        return ElementDescriptor(
            kind=self.kind,
            selector=self.selector.format(**values),
            has_text=has_text,
            has=self.has,
            role=self.role,
            name=self.name,
            label=self.label,
        )


class NotFound:
    """Falsy sentinel returned when no descriptor matched."""

    _instance: Optional["NotFound"] = None

    def __new__(cls) -> "NotFound":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "NOT_FOUND"


NOT_FOUND = NotFound()


@dataclass(frozen=True)
class Match:
    descriptor: ElementDescriptor
    locator: Locator

    @property
    def kind(self) -> str:
        return self.descriptor.kind


def format_all(descriptors: Sequence[ElementDescriptor], **values: str) -> list[ElementDescriptor]:
    return [d.format(**values) for d in descriptors]


async def candidates(
    session: Any,
    descriptors: Sequence[ElementDescriptor],
    mode: str = VISIBLE,
    timeout_ms: int = 10000,
    probe_ms: int = 3000,
) -> AsyncIterator[Match]:
    """
    Yield a Match for each descriptor whose element reaches `mode`, in priority order.
    Each probe is bounded by `probe_ms`; the whole walk stops once `timeout_ms` elapses.
    Callers that stop iterating never cause later descriptors to be probed.
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout_ms / 1000
    for d in descriptors:
        remaining_ms = int((deadline - loop.time()) * 1000)
        if remaining_ms <= 0:
            logger.debug("Resolver budget exhausted before %s", d.describe())
            return
        loc = d.locate_in_state(session, mode)
        try:
            await loc.wait_for(state=mode, timeout=min(probe_ms, remaining_ms))
        except PlaywrightError:
            logger.debug("miss [%s] %s", d.kind, d.describe())
            continue
        logger.debug("hit [%s] %s", d.kind, d.describe())
        yield Match(d, loc)


async def resolve(
    session: Any,
    descriptors: Sequence[ElementDescriptor],
    mode: str = VISIBLE,
    timeout_ms: int = 10000,
    probe_ms: int = 3000,
) -> Union[Match, NotFound]:
    """Return the first descriptor's element in `mode`, or NOT_FOUND. Never raises on a miss."""
    gen = candidates(session, descriptors, mode=mode, timeout_ms=timeout_ms, probe_ms=probe_ms)
    try:
        async for match in gen:
            return match
    finally:
        await gen.aclose()
    return NOT_FOUND


async def click_first(
    session: Any,
    descriptors: Sequence[ElementDescriptor],
    timeout_ms: int = 10000,
    probe_ms: int = 3000,
    click_timeout_ms: int = 8000,
) -> Union[Match, NotFound]:
    """Resolve then click. A click that fails after resolution counts as a miss."""
    match = await resolve(session, descriptors, timeout_ms=timeout_ms, probe_ms=probe_ms)
    if not match:
        return NOT_FOUND
    try:
        await match.locator.click(timeout=click_timeout_ms)
    except PlaywrightError as e:
        logger.debug("click on [%s] %s failed: %s", match.kind, match.descriptor.describe(), e)
        return NOT_FOUND
    return match


async def is_present(session: Any, descriptors: Sequence[ElementDescriptor], probe_ms: int = 500) -> bool:
    """Quick visibility check across descriptors; used for negative signals."""
    match = await resolve(session, descriptors, timeout_ms=probe_ms * max(1, len(descriptors)), probe_ms=probe_ms)
    return bool(match)


def marker_probes(
    session: Any, outcome: str, descriptors: Sequence[ElementDescriptor], timeout_ms: int, state: str = VISIBLE
) -> list[tuple[str, Awaitable[Any]]]:
    """(outcome, waiter) pairs for race(): one wait_for per descriptor."""
    return [
        (outcome, d.locate_in_state(session, state).wait_for(state=state, timeout=timeout_ms)) for d in descriptors
    ]


async def race(probes: Sequence[tuple[str, Awaitable[Any]]], timeout_ms: Optional[int] = None) -> Optional[str]:
    """
    Run all waiters together and return the outcome label of the first one that
    succeeds. Failing waiters are ignored. Returns None when every waiter failed or
    `timeout_ms` passed. Ties resolve in probe order.
    """
    tasks = [asyncio.ensure_future(aw) for _, aw in probes]
    labels = {task: label for task, (label, _) in zip(tasks, probes)}
    order = {task: i for i, task in enumerate(tasks)}
    loop = asyncio.get_running_loop()
    deadline = None if timeout_ms is None else loop.time() + timeout_ms / 1000
    pending = set(tasks)
    try:
        while pending:
            remaining = None if deadline is None else max(0.0, deadline - loop.time())
            done, pending = await asyncio.wait(pending, timeout=remaining, return_when=asyncio.FIRST_COMPLETED)
            if not done:
                return None
            for task in sorted(done, key=order.__getitem__):
                if not task.cancelled() and task.exception() is None:
                    return labels[task]
        return None
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
