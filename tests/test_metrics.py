"""Run reporter bookkeeping, rendering and the JSON writer."""
import io
import json

import pytest
from rich.console import Console

from labmirror.metrics import ExperimentStatus, LevelStatus, RunReporter, render_report, write_results


@pytest.fixture
def reporter():
    r = RunReporter()
    r.note_completed("Lab 0")
    r.register_pending("Lab 1")
    r.start_experiment("Lab 1")
    r.record_level(1, LevelStatus.PASSED)
    r.record_level(2, LevelStatus.FAILED, "evaluation failed")
    r.record_divergence(3)
    r.record_level(3, LevelStatus.SKIPPED, "COMMAND_LINE_ONLY")
    r.end_experiment(ExperimentStatus.COMPLETED)
    return r


class TestRunReporter:
    def test_records_accumulate_in_order(self, reporter):
        summary = reporter.generate_report()
        assert [lab.name for lab in summary.labs] == ["Lab 0", "Lab 1"]
        lab = summary.labs[1]
        assert lab.status is ExperimentStatus.COMPLETED
        assert [lv.index for lv in lab.levels] == [1, 2, 3]
        assert lab.count(LevelStatus.FAILED) == 1
        assert lab.divergences == [3]
        assert lab.started_at and lab.finished_at
        assert [lab.name for lab in summary.attempted] == ["Lab 1"]

    def test_pending_registration_is_not_duplicated(self):
        r = RunReporter()
        r.register_pending("Lab 1")
        r.register_pending("Lab 1")
        r.start_experiment("Lab 1")
        labs = r.generate_report().labs
        assert len(labs) == 1
        assert labs[0].status is ExperimentStatus.IN_PROGRESS

    def test_record_level_outside_experiment_raises(self):
        with pytest.raises(RuntimeError):
            RunReporter().record_level(1, LevelStatus.PASSED)


class TestOutput:
    def test_render_lists_failed_levels_and_divergences(self, reporter):
        buf = io.StringIO()
        render_report(reporter.generate_report(), Console(file=buf, width=200))
        text = buf.getvalue()
        assert "Lab 1" in text
        assert "level 2: evaluation failed" in text
        assert "Divergence" in text
        assert "before run" in text

    def test_write_results_json(self, reporter, tmp_path):
        path = tmp_path / "out" / "results.json"
        write_results(path, reporter.generate_report())
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["labs"][0]["previously_completed"] is True
        assert data["labs"][1]["status"] == "COMPLETED"
        assert data["labs"][1]["levels"][1] == {"index": 2, "status": "FAILED", "detail": "evaluation failed"}
