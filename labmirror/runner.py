"""Run entry points: set up logging and the browser, drive the traversal, report."""
import asyncio
import logging
from pathlib import Path

from rich.logging import RichHandler

from .agent import Role, SessionAgent
from .browser import acquire, release
from .config import Settings
from .labs import LabListing
from .metrics import RunReporter, RunSummary, render_report
from .traversal import LabTraversal

logger = logging.getLogger(__name__)


def setup_logging(out_dir: Path) -> logging.Logger:
    """DEBUG to <out_dir>/debug.log (fresh per run), INFO to the console."""
    out_dir.mkdir(parents=True, exist_ok=True)
    log_path = out_dir / "debug.log"
    root = logging.getLogger("labmirror")
    root.setLevel(logging.DEBUG)
    root.handlers.clear()
    fh = logging.FileHandler(log_path, mode="w", encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root.addHandler(fh)
    sh = RichHandler(rich_tracebacks=True, show_path=False)
    sh.setLevel(logging.INFO)
    root.addHandler(sh)
    return root


async def _wait_for_operator() -> None:
    loop = asyncio.get_running_loop()
    await loop.run_in_executor(None, input, "Run finished; browser left open. Press Enter to close it...")


async def run_mirror(settings: Settings, keep_open: bool = True) -> RunSummary:
    """
    Copy every incomplete lab from the source account into the target account.
    The summary is rendered even when the run dies; the error is then re-raised.
    """
    source_creds = settings.require_dual()
    reporter = RunReporter()
    handles = await acquire(settings, roles=(Role.SOURCE.value, Role.TARGET.value))
    try:
        source = SessionAgent(Role.SOURCE, source_creds, handles.pages[Role.SOURCE.value], settings)
        target = SessionAgent(Role.TARGET, settings.target, handles.pages[Role.TARGET.value], settings)
        logger.info("Source %s -> target %s, course %r", source, target, settings.course_name)
        try:
            summary = await LabTraversal(source, target, reporter, settings).run()
        except Exception:
            logger.exception("Run aborted")
            render_report(reporter.generate_report())
            raise
        render_report(summary)
        if keep_open and not settings.headless:
            await _wait_for_operator()
    finally:
        await release(handles)
    return summary


async def list_labs(settings: Settings) -> LabListing:
    """Single-account mode: log the target in, open the course and list its labs."""
    handles = await acquire(settings, roles=(Role.TARGET.value,))
    try:
        agent = SessionAgent(Role.TARGET, settings.target, handles.pages[Role.TARGET.value], settings)
        await agent.login()
        await agent.navigate_with_relogin()
        listing = await agent.find_labs()
    finally:
        await release(handles)
    for entry in listing.entries:
        logger.info("%s %s", "[done]" if entry.completed else "[todo]", entry.name)
    return listing
