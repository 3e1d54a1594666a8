"""
SandGate — Least-Privilege Gateway for Sandboxed AI Assistants

Host-side access control between an AI coding assistant running in a
container and (a) sibling Docker containers, (b) the host OS:

- core/     : Policy engine (patterns, blocked paths, masking), config, audit log
- gateway/  : Enforcement surfaces (container operations, host commands)
- hosttools/: Approved host tool scripts and the approval pipeline
- cli       : Operator commands (python -m sandgate)
"""

from sandgate.core.version import __version__
