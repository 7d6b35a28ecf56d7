"""
Audit trail for liquidation lifecycle events.
Each state change is appended to a JSONL file, one entry per line.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .config import settings
from .utils import utcnow

logger = logging.getLogger(__name__)

class AuditLogger:
    """Append-only audit log of data changes."""

    def __init__(self, audit_dir: Optional[Union[str, Path]] = None):
        self.audit_dir = Path(audit_dir or settings.AUDIT_LOG_PATH)
        self.audit_dir.mkdir(parents=True, exist_ok=True)
        self.changes_log = self.audit_dir / "changes.jsonl"

    def log_transition(
        self,
        entity_type: str,
        entity_id: str,
        operation: str,
        changes: Dict[str, Any],
        actor: Optional[str] = None,
    ):
        """Record one change (approve, reject, void, pay, delete...)."""
        log_entry = {
            'timestamp': utcnow().isoformat(),
            'entity_type': entity_type,
            'entity_id': entity_id,
            'operation': operation,
            'changes': changes,
            'actor': actor,
        }
        try:
            with open(self.changes_log, 'a', encoding='utf-8') as f:
                f.write(json.dumps(log_entry, default=str) + '\n')
        except OSError as e:
            # the database write already committed; losing the audit line is logged, not raised
            logger.error("Could not write audit entry for %s %s: %s", entity_type, entity_id, e)

    def get_change_history(self, entity_type: str, entity_id: str) -> List[Dict[str, Any]]:
        """Get change history for specific entity, newest first."""
        if not self.changes_log.exists():
            return []

        changes = []
        with open(self.changes_log, 'r', encoding='utf-8') as f:
            for line in f:
                try:
                    entry = json.loads(line.strip())
                except json.JSONDecodeError:
                    continue
                if entry.get('entity_type') == entity_type and entry.get('entity_id') == entity_id:
                    changes.append(entry)

        # append-only file: newest first is the reverse of file order
        changes.reverse()
        return changes
