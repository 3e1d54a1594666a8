#!/usr/bin/env python3
"""
SandGate Operator CLI
======================

Out-of-band commands for the operator running the gateway:
  - Host tool listing and approval (staging → approved store)
  - Security policy and blocked path review
  - Project ID lookup for the approved store layout

Usage:
  python -m sandgate tools list               # Tools visible to the assistant
  python -m sandgate tools list --dev         # Include staging dirs (dev mode)
  python -m sandgate tools changes            # Staging vs approved status
  python -m sandgate tools sync               # Interactive approval
  python -m sandgate policy show              # Effective security policy
  python -m sandgate paths blocked            # All blocked paths
  python -m sandgate paths blocked --container api
  python -m sandgate project-id               # Approved-store directory name

Global options: --config FILE, --workspace DIR, -v/--verbose
"""

import os
import sys
import json
import logging
import argparse
from pathlib import Path
from typing import List, Optional

from sandgate.core.types import SandGateError, SyncStatus
from sandgate.core.version import __version__
from sandgate.core.config import ConfigError, GatewayConfig, load_config
from sandgate.core.access.policy import SecurityPolicy
from sandgate.core.audit.logger import SecurityLogger
from sandgate.hosttools.registry import HostToolRegistry
from sandgate.hosttools.approval import (
    ApprovalPipeline, ConsoleDecider, project_approved_dir, project_id,
)


# =============================================================================
# TERMINAL FORMATTING
# =============================================================================

class Colors:
    """ANSI color codes, disabled by NO_COLOR or a non-tty stdout."""
    ENABLED = sys.stdout.isatty() and not os.environ.get('NO_COLOR')

    @classmethod
    def _c(cls, code: str, text: str) -> str:
        return f"\033[{code}m{text}\033[0m" if cls.ENABLED else text

    @classmethod
    def bold(cls, t): return cls._c("1", t)
    @classmethod
    def dim(cls, t): return cls._c("2", t)
    @classmethod
    def green(cls, t): return cls._c("32", t)
    @classmethod
    def red(cls, t): return cls._c("31", t)
    @classmethod
    def yellow(cls, t): return cls._c("33", t)


OK = Colors.green("✓")
FAIL = Colors.red("✗")

STATUS_LABELS = {
    SyncStatus.NEW: Colors.green("new"),
    SyncStatus.UPDATED: Colors.yellow("updated"),
    SyncStatus.UNCHANGED: Colors.dim("unchanged"),
}


def heading(text: str):
    print(f"\n{Colors.bold(text)}")
    print(Colors.dim("─" * 60))


def table_row(label: str, value: str, status: str = ""):
    label_col = f"  {label:<30}"
    if status:
        print(f"{label_col} {status} {value}")
    else:
        print(f"{label_col} {value}")


# =============================================================================
# HELPERS
# =============================================================================

def _load(args) -> GatewayConfig:
    cfg = load_config(Path(args.config) if args.config else None)
    if args.workspace:
        cfg.workspace_root = args.workspace
    auto = cfg.security.blocked_paths.auto_import
    if auto.workspace_root == ".":
        # Unset: scan the gateway workspace, not the current directory
        auto.workspace_root = cfg.workspace_root
    return cfg


def _security_logger(cfg: GatewayConfig) -> Optional[SecurityLogger]:
    try:
        return SecurityLogger(cfg)
    except OSError as e:
        logging.getLogger(__name__).warning("Audit log unavailable (%s): %s", cfg.log_dir, e)
        return SecurityLogger()


# =============================================================================
# COMMANDS
# =============================================================================

def cmd_tools(args) -> int:
    cfg = _load(args)
    workspace = cfg.workspace_path

    if args.tools_command == 'list':
        registry = HostToolRegistry(cfg.host_tools, workspace, dev_mode=args.dev)
        tools = registry.list_tools()
        heading(f"Host tools ({'secure' if registry.is_secure_mode else 'legacy'} mode)")
        if not tools:
            print("  No tools found.")
        for tool in tools:
            table_row(tool.name, tool.description)
        return 0

    if not cfg.host_tools.approved_dir:
        print(f"  {FAIL} host_tools.approved_dir is not configured (legacy mode has no approval)")
        return 1

    pipeline = ApprovalPipeline(cfg.host_tools, workspace, _security_logger(cfg))
    if args.tools_command == 'changes':
        items = pipeline.detect_changes()
        heading(f"Staging vs {pipeline.approved_dir}")
        if not items:
            print("  No staging tools found.")
        for item in items:
            table_row(item.name, item.description, STATUS_LABELS[item.status])
        for name, error in pipeline.detect_errors.items():
            table_row(name, error, FAIL)
        return 0

    if args.tools_command == 'sync':
        report = pipeline.run_interactive_sync(ConsoleDecider())
        print(f"\n  {OK} {report.synced_count} synced, {len(report.skipped)} skipped, "
              f"{len(report.unchanged)} unchanged")
        for name, error in report.failed.items():
            print(f"  {FAIL} {name}: {error}")
        return 1 if report.failed else 0

    return 2


def cmd_policy(args) -> int:
    cfg = _load(args)
    policy = SecurityPolicy.from_config(cfg.security)
    summary = policy.summary()
    summary['host_commands'] = {
        'enabled': cfg.host_commands.enabled,
        'whitelist': cfg.host_commands.whitelist,
        'deny': cfg.host_commands.deny,
        'dangerously': {
            'enabled': cfg.host_commands.dangerously.enabled,
            'commands': cfg.host_commands.dangerously.commands,
        },
    }
    print(json.dumps(summary, indent=2))
    return 0


def cmd_paths(args) -> int:
    cfg = _load(args)
    policy = SecurityPolicy.from_config(cfg.security)
    entries = policy.blocked_paths_for(args.container) if args.container else policy.blocked_paths
    heading(f"Blocked paths{' for ' + args.container if args.container else ''}")
    if not entries:
        print("  No blocked paths.")
    for entry in entries:
        origin = f" ({entry.origin})" if entry.origin and entry.origin != "config" else ""
        table_row(f"[{entry.container}] {entry.pattern}",
                  Colors.dim(f"{entry.reason}, {entry.source.value}{origin}"))
    return 0


def cmd_project_id(args) -> int:
    cfg = _load(args)
    workspace = cfg.workspace_path
    print(project_id(workspace))
    if args.verbose and cfg.host_tools.approved_dir:
        print(Colors.dim(str(project_approved_dir(cfg.host_tools.approved_dir, workspace))))
    return 0


# =============================================================================
# PARSER
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='sandgate',
        description='SandGate operator CLI: host tool approval and policy review',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  sandgate tools changes                  Which staging tools differ
  sandgate tools sync                     Approve staging tools interactively
  sandgate policy show                    Effective security policy as JSON
  sandgate paths blocked --container api  Blocked paths for one container
        """
    )
    parser.add_argument('--config', help='Path to sandgate.yaml')
    parser.add_argument('--workspace', help='Workspace root (overrides configuration)')
    parser.add_argument('-v', '--verbose', action='store_true', help='Debug logging')
    parser.add_argument('--version', action='version', version=f'sandgate {__version__}')

    sub = parser.add_subparsers(dest='command')

    tools_p = sub.add_parser('tools', help='Host tool management')
    tools_sub = tools_p.add_subparsers(dest='tools_command')
    list_t = tools_sub.add_parser('list', help='List available tools')
    list_t.add_argument('--dev', action='store_true', help='Include staging dirs')
    tools_sub.add_parser('changes', help='Show staging vs approved status')
    tools_sub.add_parser('sync', help='Interactively approve staging tools')

    policy_p = sub.add_parser('policy', help='Security policy')
    policy_sub = policy_p.add_subparsers(dest='policy_command')
    policy_sub.add_parser('show', help='Print the effective policy')

    paths_p = sub.add_parser('paths', help='Blocked paths')
    paths_sub = paths_p.add_subparsers(dest='paths_command')
    blocked_p = paths_sub.add_parser('blocked', help='List blocked paths')
    blocked_p.add_argument('--container', help='Only entries applying to this container')

    sub.add_parser('project-id', help='Print the project ID of the workspace')
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    dispatch = {
        'tools': (cmd_tools, 'tools_command'),
        'policy': (cmd_policy, 'policy_command'),
        'paths': (cmd_paths, 'paths_command'),
        'project-id': (cmd_project_id, None),
    }

    entry = dispatch.get(args.command)
    if entry is None:
        parser.print_help()
        return 2
    handler, sub_attr = entry
    if sub_attr and not getattr(args, sub_attr, None):
        print(f"  {FAIL} '{args.command}' needs a subcommand "
              f"(see: sandgate {args.command} --help)", file=sys.stderr)
        return 2

    try:
        return handler(args)
    except ConfigError as e:
        print(f"  {FAIL} Configuration error: {e}", file=sys.stderr)
        return 1
    except SandGateError as e:
        print(f"  {FAIL} {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print(f"\n  {Colors.dim('Interrupted.')}")
        return 130


__all__ = ['main', 'build_parser']
