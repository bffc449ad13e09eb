import json
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from boxoffice.logger import logger
from boxoffice.models import SeatSnapshot

SELL = "SELL"
RESERVE = "RESERVE"
UNRESERVE = "UNRESERVE"


class OperationLog:
    """Журнал проведённых операций кассы (JSON Lines, только дописывание)"""

    def __init__(self, log_file):
        self.log_file = Path(log_file)

    def log_action(self, action: str, session_id: str, seats: List[SeatSnapshot],
                   subject: Optional[str] = None, channel: Optional[str] = None,
                   reservation_id: Optional[str] = None):
        """Записать операцию в журнал"""
        log_entry = {
            "timestamp": datetime.now().isoformat(),
            "action": action,
            "session_id": session_id,
            "subject": subject,
            "channel": channel,
            "reservation_id": reservation_id,
            "seats": [s.to_dict() for s in seats],
            "total": sum(s.price for s in seats)
        }

        try:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_file, "a", encoding="utf-8") as f:
                f.write(json.dumps(log_entry, ensure_ascii=False) + "\n")
        except OSError as e:
            # ошибка записи журнала не прерывает операцию
            logger.error(f"Failed to write operation log: {e}")
        return log_entry

    def get_logs(self, limit: int = 100, session_id: Optional[str] = None) -> list:
        """Последние записи журнала"""
        if not self.log_file.exists():
            return []

        try:
            with open(self.log_file, "r", encoding="utf-8") as f:
                lines = f.readlines()
        except OSError as e:
            logger.error(f"Failed to read operation log: {e}")
            return []

        logs = []
        for line in lines:
            try:
                entry = json.loads(line)
            except json.JSONDecodeError:
                logger.warning(f"Skipping broken log line: {line.strip()[:80]}")
                continue
            if session_id is None or entry.get("session_id") == session_id:
                logs.append(entry)
        return logs[-limit:] if limit else logs

    def metrics(self, session_id: Optional[str] = None) -> dict:
        counts = Counter()
        revenue = 0
        for entry in self.get_logs(limit=0, session_id=session_id):
            seats = len(entry.get("seats", []))
            counts[entry.get("action")] += seats
            if entry.get("action") == SELL:
                revenue += entry.get("total", 0)
        return {
            "sold": counts.get(SELL, 0),
            "reserved": counts.get(RESERVE, 0),
            "cancelled": counts.get(UNRESERVE, 0),
            "revenue": revenue,
            "timestamp": datetime.now().isoformat()
        }

    def clear(self) -> bool:
        if self.log_file.exists():
            self.log_file.unlink()
            logger.info("Operation log cleared")
            return True
        return False
