"""
SandGate Entry Point — Run with: python -m sandgate

Usage:
    python -m sandgate tools list|changes|sync
    python -m sandgate policy show
    python -m sandgate paths blocked [--container NAME]
    python -m sandgate project-id
"""

import sys


def main():
    """Main entry point for the operator CLI."""
    from sandgate.cli import main as cli_main
    return cli_main()


if __name__ == "__main__":
    sys.exit(main() or 0)
