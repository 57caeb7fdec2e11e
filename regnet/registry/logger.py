"""JSONL event log of committed and failed invocations.

One line per invocation, written after the invocation has either committed
or been rolled back, never while it is still running.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ..config import get


class EventLogger:
    """Append-only JSONL event log.

    Every event carries a monotonic ``sequence`` for ordering.
    """

    output_path: Path
    _sequence: int

    def __init__(self, output_file: str | Path) -> None:
        self.output_path = Path(output_file)
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        self._sequence = 0

    @classmethod
    def from_config(cls) -> "EventLogger | None":
        """Build the logger named by logging.event_log, or None when disabled."""
        path = get("logging.event_log")
        if not path or not isinstance(path, str):
            return None
        return cls(path)

    def log(self, event_type: str, data: dict[str, Any]) -> None:
        """Log an event to the JSONL file."""
        self._sequence += 1
        event: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "sequence": self._sequence,
            "event_type": event_type,
            **data,
        }
        with open(self.output_path, "a") as f:
            f.write(json.dumps(event) + "\n")

    def log_invocation(
        self,
        contract: str,
        method: str,
        caller_id: str,
        written: list[list[Any]],
    ) -> None:
        """Log a committed invocation.

        Args:
            contract: Contract name
            method: Operation name
            caller_id: Invoker identity
            written: Identifying fields of every record the invocation wrote
        """
        self.log("invocation_committed", {
            "contract": contract,
            "method": method,
            "caller_id": caller_id,
            "written": written,
        })

    def log_failure(
        self,
        contract: str,
        method: str,
        caller_id: str,
        code: str,
        error: str,
    ) -> None:
        """Log an invocation that was rejected and rolled back."""
        self.log("invocation_failed", {
            "contract": contract,
            "method": method,
            "caller_id": caller_id,
            "code": code,
            "error": error,
        })
