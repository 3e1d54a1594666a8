"""
SandGate — Approval Pipeline Tests
====================================

Project IDs, file comparison, change detection and the interactive sync
loop driven by a scripted decider.

Run with:  pytest tests/test_approval.py -v
"""

import io
import json
import os
import stat
from unittest.mock import patch

import pytest

from sandgate.core.config import HostToolsConfig
from sandgate.core.types import AlertSeverity, Decision, SyncItem, SyncRequest, SyncStatus
from sandgate.hosttools.approval import (
    ApprovalPipeline, ConsoleDecider, compare_files, copy_file, project_id,
    read_project_meta, unified_diff,
)


class ScriptedDecider:
    """Answers prompts from a fixed list and records everything shown."""

    def __init__(self, answers):
        self.answers = list(answers)
        self.requests = []
        self.messages = []

    def decide(self, request):
        self.requests.append(request)
        return self.answers.pop(0) if self.answers else Decision.SKIP

    def notify(self, message):
        self.messages.append(message)


@pytest.fixture
def workspace(tmp_path):
    ws = tmp_path / "workspace"
    (ws / "staging").mkdir(parents=True)
    return ws


@pytest.fixture
def pipeline(host_tools_config, workspace, mock_logger):
    return ApprovalPipeline(host_tools_config, workspace, mock_logger)


def _stage(workspace, name, description="Demo tool", body="echo hi\n"):
    path = workspace / "staging" / name
    path.write_text(f"#!/bin/bash\n# {description}\n{body}", encoding='utf-8')
    return path


# =========================================================================
# STORE LAYOUT
# =========================================================================

class TestProjectId:

    def test_format(self, tmp_path):
        pid = project_id(tmp_path / "my project!")
        name, digest = pid.rsplit('-', 1)
        assert name == "myproject"
        assert len(digest) == 8
        int(digest, 16)

    def test_deterministic(self, tmp_path):
        assert project_id(tmp_path / "a") == project_id(str(tmp_path / "a"))
        assert project_id(tmp_path / "x" / "app") != project_id(tmp_path / "y" / "app")

    def test_relative_path_resolved(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert project_id(".") == project_id(os.getcwd())
        assert project_id("sub/..") == project_id(os.getcwd())


# =========================================================================
# FILE COMPARISON
# =========================================================================

class TestCompareFiles:

    def test_missing_approved_is_new(self, tmp_path):
        staging = tmp_path / "s.sh"
        staging.write_text("a")
        assert compare_files(staging, tmp_path / "missing.sh") == SyncStatus.NEW

    def test_size_difference_skips_hashing(self, tmp_path):
        staging, approved = tmp_path / "s.sh", tmp_path / "a.sh"
        staging.write_text("longer")
        approved.write_text("short")
        with patch('sandgate.hosttools.approval.file_hash') as file_hash:
            assert compare_files(staging, approved) == SyncStatus.UPDATED
        file_hash.assert_not_called()

    def test_equal_size_different_content(self, tmp_path):
        staging, approved = tmp_path / "s.sh", tmp_path / "a.sh"
        staging.write_text("abc")
        approved.write_text("abd")
        assert compare_files(staging, approved) == SyncStatus.UPDATED

    def test_identical(self, tmp_path):
        staging, approved = tmp_path / "s.sh", tmp_path / "a.sh"
        staging.write_text("same")
        approved.write_text("same")
        assert compare_files(staging, approved) == SyncStatus.UNCHANGED

    def test_copy_file_keeps_mode(self, tmp_path):
        src = tmp_path / "s.sh"
        src.write_text("echo hi\n")
        os.chmod(src, 0o755)
        dst = tmp_path / "deep" / "dir" / "s.sh"
        copy_file(src, dst)
        assert dst.read_text() == "echo hi\n"
        assert stat.S_IMODE(dst.stat().st_mode) == 0o755

    def test_unified_diff(self, tmp_path):
        old, new = tmp_path / "old.sh", tmp_path / "new.sh"
        old.write_text("echo one\n")
        new.write_text("echo one\necho two\n")
        diff = unified_diff(old, new)
        assert "--- approved (current)" in diff
        assert "+++ staging (new)" in diff
        assert "+echo two" in diff


# =========================================================================
# PIPELINE
# =========================================================================

class TestPipeline:

    def test_requires_approved_dir(self, workspace):
        with pytest.raises(ValueError):
            ApprovalPipeline(HostToolsConfig(), workspace)

    def test_new_then_unchanged(self, pipeline, workspace, mock_logger):
        _stage(workspace, "foo.sh")
        items = pipeline.detect_changes()
        assert [(i.name, i.status) for i in items] == [("foo.sh", SyncStatus.NEW)]
        assert items[0].description == "Demo tool"

        decider = ScriptedDecider([Decision.ACCEPT])
        report = pipeline.run_interactive_sync(decider)
        assert report.synced == ["foo.sh"]
        assert report.synced_count == 1
        assert "  Copied" in decider.messages
        assert (pipeline.approved_dir / "foo.sh").read_text() == \
            (workspace / "staging" / "foo.sh").read_text()

        items = pipeline.detect_changes()
        assert [(i.name, i.status) for i in items] == [("foo.sh", SyncStatus.UNCHANGED)]

        event, severity, details = mock_logger.log_event.call_args[0]
        assert (event, severity) == ("TOOL_APPROVED", AlertSeverity.INFO)
        assert details['tool'] == "foo.sh"
        assert len(details['sha256']) == 64

    def test_nothing_to_sync(self, pipeline, workspace):
        _stage(workspace, "foo.sh")
        pipeline.run_interactive_sync(ScriptedDecider([Decision.ACCEPT]))

        decider = ScriptedDecider([])
        report = pipeline.run_interactive_sync(decider)
        assert report.unchanged == ["foo.sh"]
        assert decider.requests == []
        assert decider.messages == ["All tools are up to date. No sync needed."]

    def test_new_item_prompt(self, pipeline, workspace):
        _stage(workspace, "foo.sh")
        decider = ScriptedDecider([Decision.SKIP])
        report = pipeline.run_interactive_sync(decider)
        request = decider.requests[0]
        assert not request.allow_diff
        assert request.prompt.startswith('New tool found:\n  foo.sh - "Demo tool"')
        assert request.prompt.endswith("? [y/N] ")
        assert report.skipped == ["foo.sh"]
        assert not (pipeline.approved_dir / "foo.sh").exists()

    def test_diff_not_offered_for_new_item(self, pipeline, workspace):
        _stage(workspace, "foo.sh")
        decider = ScriptedDecider([Decision.DIFF, Decision.ACCEPT])
        report = pipeline.run_interactive_sync(decider)
        assert report.skipped == ["foo.sh"]
        assert len(decider.requests) == 1

    def test_updated_with_diff_then_accept(self, pipeline, workspace):
        _stage(workspace, "foo.sh", body="echo old\n")
        pipeline.run_interactive_sync(ScriptedDecider([Decision.ACCEPT]))
        _stage(workspace, "foo.sh", body="echo new version\n")

        assert pipeline.detect_changes()[0].status == SyncStatus.UPDATED

        decider = ScriptedDecider([Decision.DIFF, Decision.ACCEPT])
        report = pipeline.run_interactive_sync(decider)
        assert decider.requests[0].allow_diff
        assert decider.requests[0].prompt.endswith("[y/N/d(iff)] ")
        assert decider.requests[1].prompt == "  -> Update? [y/N] "
        assert any("+echo new version" in m for m in decider.messages)
        assert report.synced == ["foo.sh"]
        assert "echo new version" in (pipeline.approved_dir / "foo.sh").read_text()

    def test_mixed_run(self, pipeline, workspace):
        _stage(workspace, "a.sh")
        _stage(workspace, "b.sh")
        pipeline.run_interactive_sync(ScriptedDecider([Decision.ACCEPT, Decision.SKIP]))
        _stage(workspace, "c.sh")

        decider = ScriptedDecider([Decision.SKIP, Decision.ACCEPT])
        report = pipeline.run_interactive_sync(decider)
        assert report.unchanged == ["a.sh"]
        assert report.skipped == ["b.sh"]
        assert report.synced == ["c.sh"]
        assert "Unchanged: a.sh (skipped)" in decider.messages

    def test_project_metadata_written(self, pipeline, workspace):
        pipeline.run_interactive_sync(ScriptedDecider([]))
        meta = json.loads((pipeline.approved_dir / ".project").read_text())
        assert meta == {'workspace': str(workspace)}
        assert read_project_meta(pipeline.approved_dir) == str(workspace)

    def test_read_project_meta_missing(self, tmp_path):
        assert read_project_meta(tmp_path) is None

    def test_invalid_staging_name_reported(self, pipeline, workspace):
        _stage(workspace, "bad..name.sh")
        _stage(workspace, "good.sh")
        items = pipeline.detect_changes()
        assert [i.name for i in items] == ["good.sh"]
        assert "bad..name.sh" in pipeline.detect_errors

        report = pipeline.run_interactive_sync(ScriptedDecider([Decision.ACCEPT]))
        assert "bad..name.sh" in report.failed
        assert report.synced == ["good.sh"]

    def test_copy_failure_recorded(self, pipeline, workspace, mock_logger):
        _stage(workspace, "foo.sh")
        with patch('sandgate.hosttools.approval.copy_file', side_effect=OSError("disk full")):
            report = pipeline.run_interactive_sync(ScriptedDecider([Decision.ACCEPT]))
        assert report.failed == {"foo.sh": "disk full"}
        assert report.synced == []
        assert mock_logger.log_action.call_args[0][2] == "ERROR"


# =========================================================================
# CONSOLE DECIDER
# =========================================================================

class TestConsoleDecider:

    def _request(self, allow_diff):
        item = SyncItem(name="foo.sh", status=SyncStatus.UPDATED,
                        staging_path="/s/foo.sh", approved_path="/a/foo.sh")
        return SyncRequest(item=item, prompt="Update? ", allow_diff=allow_diff)

    @pytest.mark.parametrize("answer,allow_diff,expected", [
        ("y\n", False, Decision.ACCEPT),
        ("YES\n", True, Decision.ACCEPT),
        ("d\n", True, Decision.DIFF),
        ("diff\n", True, Decision.DIFF),
        ("d\n", False, Decision.SKIP),
        ("n\n", True, Decision.SKIP),
        ("\n", True, Decision.SKIP),
        ("", True, Decision.SKIP),
    ])
    def test_answers(self, answer, allow_diff, expected):
        out = io.StringIO()
        decider = ConsoleDecider(stdin=io.StringIO(answer), stdout=out)
        assert decider.decide(self._request(allow_diff)) == expected
        assert out.getvalue() == "Update? "

    def test_notify(self):
        out = io.StringIO()
        ConsoleDecider(stdin=io.StringIO(), stdout=out).notify("  Copied\n")
        assert out.getvalue() == "  Copied\n"

    def test_full_run_from_console(self, pipeline, workspace):
        _stage(workspace, "foo.sh")
        out = io.StringIO()
        report = pipeline.run_interactive_sync(ConsoleDecider(io.StringIO("y\n"), out))
        assert report.synced == ["foo.sh"]
        assert "New tool found" in out.getvalue()
