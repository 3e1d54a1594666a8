#!/usr/bin/env python3
"""
SandGate Core Audit — Security Logger
=======================================
Tamper-evident logging of gateway decisions:
- Chain hashing for integrity (each entry hashes the previous one)
- Separate JSON-lines files for events, executed actions and denials
- Mirrored to the standard 'SANDGATE' logger

When no log directory is configured only the standard logger is used.

Import from: sandgate.core.audit.logger
"""

import json
import hashlib
import secrets
import logging
import threading
from pathlib import Path
from datetime import datetime
from typing import Dict, Optional
from collections import defaultdict

from sandgate.core.types import AlertSeverity
from sandgate.core.constants import SESSION_ID_BYTES


class SecurityLogger:
    """Chain-hashed audit log for every allow/deny/execute decision."""

    TARGET_LIMIT = 200
    RESULT_LIMIT = 500

    def __init__(self, config=None, log_dir: Optional[Path] = None):
        if log_dir is None and config is not None:
            log_dir = getattr(config, 'log_dir', None)
        self.log_dir = Path(log_dir) if log_dir else None
        if self.log_dir is not None:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            self.main_log = self.log_dir / "security_events.log"
            self.action_log = self.log_dir / "actions.log"
            self.blocked_log = self.log_dir / "blocked.log"
        else:
            self.main_log = self.action_log = self.blocked_log = None

        self.session_id = secrets.token_hex(SESSION_ID_BYTES)
        self.entry_counter = 0
        self.previous_hash = "0" * 64
        self.stats = defaultdict(int)
        self._lock = threading.Lock()

        self.logger = logging.getLogger('SANDGATE')

    def _chain_hash(self, entry: str) -> str:
        return hashlib.sha256(f"{self.previous_hash}:{entry}".encode()).hexdigest()

    def _write(self, log_file: Optional[Path], entry: Dict) -> None:
        with self._lock:
            self.entry_counter += 1
            entry.update({
                'timestamp': datetime.now().isoformat(),
                'session_id': self.session_id,
                'sequence': self.entry_counter,
            })
            entry_str = json.dumps(entry, sort_keys=True, default=str)
            entry['chain_hash'] = self._chain_hash(entry_str)
            self.previous_hash = entry['chain_hash']

            if log_file is None:
                return
            try:
                with open(log_file, 'a', encoding='utf-8') as f:
                    f.write(json.dumps(entry, default=str) + '\n')
            except OSError as e:
                self.logger.warning(f"Audit write failed ({log_file.name}): {e}")

    def log_event(self, event: str, severity: AlertSeverity, details: Dict = None) -> None:
        self._write(self.main_log, {'event': event, 'severity': severity.value,
                                    'details': details or {}})
        self.stats[f'{severity.value}_{event}'] += 1

        if severity in (AlertSeverity.HIGH, AlertSeverity.CRITICAL):
            self.logger.warning(f"[{severity.value.upper()}] {event}")
        else:
            self.logger.debug(f"{event} {details or ''}")

    def log_action(self, action: str, target: str, result: str, details: Dict = None) -> None:
        target = target[:self.TARGET_LIMIT]
        result = result[:self.RESULT_LIMIT] if result else ""
        self._write(self.action_log, {'action': action, 'target': target, 'result': result,
                                      'details': details or {}})
        self.stats['actions'] += 1
        self.logger.info(f"ACTION: {action} | {target} | {result}")

    def log_blocked(self, action: str, target: str, reason: str) -> None:
        target = target[:self.TARGET_LIMIT]
        self._write(self.blocked_log, {'action': action, 'target': target, 'reason': reason})
        self.stats['blocked'] += 1
        self.logger.warning(f"BLOCKED: {action} | {target} | {reason}")


__all__ = ['SecurityLogger']
