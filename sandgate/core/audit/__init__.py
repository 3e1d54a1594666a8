"""
Audit Layer — Chain-hashed security logging.

Classes:
- SecurityLogger: Tamper-evident JSON-lines log of events, actions and denials
"""

from sandgate.core.audit.logger import SecurityLogger

__all__ = ['SecurityLogger']
