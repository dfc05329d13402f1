"""Per-lab and per-level outcome records, the run reporter, and a JSON writer."""
import json
import logging
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.table import Table

logger = logging.getLogger(__name__)


class LevelStatus(str, Enum):
    PASSED = "PASSED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class ExperimentStatus(str, Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    LOCKED = "LOCKED"
    COMPLETED = "COMPLETED"
    COMPLETED_SKIP = "COMPLETED_SKIP"
    COMPLETED_OR_STUCK = "COMPLETED_OR_STUCK"


@dataclass
class LevelRecord:
    index: int  # 1-based
    status: LevelStatus
    detail: str = ""


@dataclass
class LabRecord:
    name: str
    status: ExperimentStatus = ExperimentStatus.PENDING
    levels: list[LevelRecord] = field(default_factory=list)
    started_at: Optional[str] = None
    finished_at: Optional[str] = None
    seconds: float = 0.0
    previously_completed: bool = False
    divergences: list[int] = field(default_factory=list)  # target level indices the source could not follow

    def count(self, status: LevelStatus) -> int:
        return sum(1 for lv in self.levels if lv.status is status)


@dataclass
class RunSummary:
    labs: list[LabRecord] = field(default_factory=list)
    started_at: str = ""
    finished_at: str = ""
    total_seconds: float = 0.0

    @property
    def attempted(self) -> list[LabRecord]:
        return [lab for lab in self.labs if not lab.previously_completed]

    def to_dict(self) -> dict:
        return asdict(self)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class RunReporter:
    """
    Accumulates lab and level outcomes for one run. Only the traversal machine
    writes to it; `generate_report` is read once at the end.
    """

    def __init__(self) -> None:
        self._labs: list[LabRecord] = []
        self._current: Optional[LabRecord] = None
        self._t0 = time.monotonic()
        self._lab_t0 = 0.0
        self._started_at = _now()

    @property
    def current(self) -> Optional[LabRecord]:
        return self._current

    def find(self, name: str) -> Optional[LabRecord]:
        for lab in self._labs:
            if lab.name == name:
                return lab
        return None

    def note_completed(self, name: str) -> None:
        """A lab the target account had already finished before this run."""
        if self.find(name) is None:
            self._labs.append(
                LabRecord(name=name, status=ExperimentStatus.COMPLETED, previously_completed=True)
            )

    def register_pending(self, name: str) -> None:
        if self.find(name) is None:
            self._labs.append(LabRecord(name=name))

    def start_experiment(self, name: str) -> LabRecord:
        record = self.find(name)
        if record is None:
            record = LabRecord(name=name)
            self._labs.append(record)
        record.status = ExperimentStatus.IN_PROGRESS
        record.started_at = _now()
        self._lab_t0 = time.monotonic()
        self._current = record
        logger.info("Experiment started: %s", name)
        return record

    def record_level(self, index: int, status: LevelStatus, detail: str = "") -> LevelRecord:
        if self._current is None:
            raise RuntimeError("record_level called outside an experiment")
        entry = LevelRecord(index=index, status=status, detail=detail)
        self._current.levels.append(entry)
        logger.info("Level %d: %s%s", index, status.value, f" ({detail})" if detail else "")
        return entry

    def record_divergence(self, index: int) -> None:
        if self._current is None:
            raise RuntimeError("record_divergence called outside an experiment")
        self._current.divergences.append(index)
        logger.warning("Source could not follow the target past level %d", index)

    def end_experiment(self, status: ExperimentStatus) -> None:
        if self._current is None:
            return
        self._current.status = status
        self._current.finished_at = _now()
        self._current.seconds = round(time.monotonic() - self._lab_t0, 1)
        logger.info("Experiment ended: %s -> %s", self._current.name, status.value)
        self._current = None

    def generate_report(self) -> RunSummary:
        return RunSummary(
            labs=list(self._labs),
            started_at=self._started_at,
            finished_at=_now(),
            total_seconds=round(time.monotonic() - self._t0, 1),
        )


def render_report(summary: RunSummary, console: Optional[Console] = None) -> None:
    """Print the run summary as a table, followed by failed levels and divergences."""
    console = console or Console(stderr=True)
    table = Table(title="Run summary")
    table.add_column("Lab")
    table.add_column("Status")
    table.add_column("Seconds", justify="right")
    table.add_column("Passed", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Skipped", justify="right")
    for lab in summary.labs:
        status = lab.status.value + (" (before run)" if lab.previously_completed else "")
        table.add_row(
            lab.name,
            status,
            f"{lab.seconds:.1f}",
            str(lab.count(LevelStatus.PASSED)),
            str(lab.count(LevelStatus.FAILED)),
            str(lab.count(LevelStatus.SKIPPED)),
        )
    console.print(table)

    for lab in summary.labs:
        failed = [lv for lv in lab.levels if lv.status is LevelStatus.FAILED]
        for lv in failed:
            console.print(f"[red]FAILED[/red] {lab.name} level {lv.index}: {lv.detail or '-'}")
        if lab.divergences:
            console.print(
                f"[yellow]Divergence[/yellow] {lab.name}: source stayed behind after level(s) "
                + ", ".join(str(i) for i in lab.divergences)
            )
    console.print(
        f"{len(summary.attempted)} lab(s) attempted, "
        f"{len(summary.labs) - len(summary.attempted)} already complete, {summary.total_seconds:.1f}s"
    )


def write_results(path: Path, summary: RunSummary) -> None:
    """Write the summary as JSON to `path`."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(summary.to_dict(), f, indent=2, ensure_ascii=False)
    logger.info("Wrote %s", path)
