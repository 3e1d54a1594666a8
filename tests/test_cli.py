"""
SandGate — Operator CLI Tests
===============================

Command dispatch and output of the operator CLI against a temporary
workspace and config file.

Run with:  pytest tests/test_cli.py -v
"""

import io
import json

import pytest

from sandgate.cli import build_parser, main
from sandgate.hosttools.approval import project_id


@pytest.fixture
def workspace(tmp_path):
    ws = tmp_path / "workspace"
    staging = ws / ".sandbox" / "host-tools"
    staging.mkdir(parents=True)
    (staging / "deploy.sh").write_text("#!/bin/bash\n# Deploy the demo\necho ok\n")
    return ws


@pytest.fixture
def config_file(tmp_path, workspace):
    path = tmp_path / "sandgate.yaml"
    path.write_text(
        f"base_dir: {tmp_path / 'home'}\n"
        "security:\n"
        "  allowed_containers: [api]\n"
        "  blocked_paths:\n"
        "    manual:\n"
        "      api: ['/etc/shadow']\n"
        "host_access:\n"
        f"  workspace_root: {workspace}\n"
        "  host_commands:\n"
        "    enabled: true\n"
        "    whitelist:\n"
        "      git: ['status']\n"
        "  host_tools:\n"
        "    enabled: true\n"
        f"    approved_dir: {tmp_path / 'approved'}\n"
    )
    return path


def _run(config_file, *args):
    return main(['--config', str(config_file)] + list(args))


class TestDispatch:

    def test_no_command(self, capsys):
        assert main([]) == 2
        assert "usage:" in capsys.readouterr().out

    def test_missing_subcommand(self, config_file, capsys):
        assert _run(config_file, 'tools') == 2
        assert "needs a subcommand" in capsys.readouterr().err

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc:
            build_parser().parse_args(['--version'])
        assert exc.value.code == 0
        assert "sandgate 1.0.0" in capsys.readouterr().out

    def test_config_error(self, tmp_path, capsys):
        bad = tmp_path / "bad.yaml"
        bad.write_text("security:\n  mode: lenient\n")
        assert main(['--config', str(bad), 'policy', 'show']) == 1
        assert "Configuration error" in capsys.readouterr().err


class TestCommands:

    def test_policy_show(self, config_file, capsys):
        assert _run(config_file, 'policy', 'show') == 0
        summary = json.loads(capsys.readouterr().out)
        assert summary['mode'] == 'moderate'
        assert summary['allowed_containers'] == ['api']
        assert summary['host_commands']['whitelist'] == {'git': ['status']}

    def test_paths_blocked(self, config_file, capsys):
        assert _run(config_file, 'paths', 'blocked', '--container', 'api') == 0
        out = capsys.readouterr().out
        assert "[api] /etc/shadow" in out
        assert "[*] .env" in out

    def test_auto_import_follows_workspace(self, tmp_path, workspace, monkeypatch, capsys):
        (workspace / ".aiexclude").write_text("*.secret\n")
        other = tmp_path / "other"
        other.mkdir()
        (other / ".aiexclude").write_text("*.other\n")
        path = tmp_path / "auto.yaml"
        path.write_text(
            f"base_dir: {tmp_path / 'home'}\n"
            "security:\n"
            "  blocked_paths:\n"
            "    auto_import:\n"
            "      enabled: true\n"
            "      scan_files: []\n"
            "host_access:\n"
            f"  workspace_root: {workspace}\n"
        )
        monkeypatch.chdir(tmp_path)

        assert _run(path, 'paths', 'blocked') == 0
        out = capsys.readouterr().out
        assert "*.secret" in out
        assert "*.other" not in out

        assert _run(path, '--workspace', str(other), 'paths', 'blocked') == 0
        out = capsys.readouterr().out
        assert "*.other" in out
        assert "*.secret" not in out

    def test_project_id(self, config_file, workspace, capsys):
        assert _run(config_file, 'project-id') == 0
        assert capsys.readouterr().out.strip() == project_id(workspace)

    def test_workspace_override(self, config_file, tmp_path, capsys):
        other = tmp_path / "other"
        other.mkdir()
        assert _run(config_file, '--workspace', str(other), 'project-id') == 0
        assert capsys.readouterr().out.strip() == project_id(other)

    def test_tools_changes_and_sync(self, config_file, monkeypatch, capsys):
        assert _run(config_file, 'tools', 'changes') == 0
        out = capsys.readouterr().out
        assert "deploy.sh" in out
        assert "new" in out

        monkeypatch.setattr('sys.stdin', io.StringIO("y\n"))
        assert _run(config_file, 'tools', 'sync') == 0
        assert "1 synced" in capsys.readouterr().out

        assert _run(config_file, 'tools', 'list') == 0
        out = capsys.readouterr().out
        assert "deploy.sh" in out
        assert "Deploy the demo" in out

    def test_tools_list_dev_mode(self, config_file, capsys):
        assert _run(config_file, 'tools', 'list') == 0
        assert "No tools found." in capsys.readouterr().out
        assert _run(config_file, 'tools', 'list', '--dev') == 0
        assert "deploy.sh" in capsys.readouterr().out

    def test_tools_disabled(self, tmp_path, capsys):
        path = tmp_path / "sandgate.yaml"
        path.write_text(f"base_dir: {tmp_path}\n")
        assert main(['--config', str(path), 'tools', 'list']) == 1
        assert "host tools are disabled" in capsys.readouterr().err
