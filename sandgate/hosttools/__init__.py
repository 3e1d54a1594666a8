"""
Host Tools — Approved tool scripts.

Submodules:
- toolparser: Per-extension header parsers, name validation
- registry: Read side (priority-ordered tool directories)
- approval: Write side (staging → approved store, interactive sync)
"""

from sandgate.hosttools.registry import HostToolRegistry
from sandgate.hosttools.approval import ApprovalPipeline, ConsoleDecider, project_id

__all__ = ['HostToolRegistry', 'ApprovalPipeline', 'ConsoleDecider', 'project_id']
