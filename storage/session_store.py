# =============================================================================
# storage/session_store.py
#
# JSON-file archive for monitoring sessions and the durable alert log.
#
# Layout under the data directory:
#   sessions/<session_id>.json   one SessionData per file
#   alerts.json                  every AlertEvent ever emitted, oldest first
#
# Reads are tolerant: a missing or corrupt file is logged and treated as
# empty. Writes propagate their errors.
# =============================================================================

import json
import os
from datetime import datetime, timezone
from typing import Any, List, Optional

from config import DATA_DIR
from core.logger import get_logger
from monitor_engine.data_structures import AlertEvent, SessionData

log = get_logger(__name__)


class SessionStore:
    """
    Usage:
        store = SessionStore("data/")
        alerts = AlertSystem(on_alert=..., sink=store.save_alert)
        store.save_session(recorder.stop())
    """

    def __init__(self, data_dir: str = DATA_DIR):
        self.data_dir = data_dir
        self._sessions_dir = os.path.join(data_dir, "sessions")
        self._alerts_path = os.path.join(data_dir, "alerts.json")
        os.makedirs(self._sessions_dir, exist_ok=True)
        log.info(f"SessionStore at {os.path.abspath(data_dir)}")

    # ── File helpers ──────────────────────────────────────────────────────────

    def _read_json(self, path: str) -> Optional[Any]:
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            log.warning(f"Could not read {path}: {e}")
            return None

    def _write_json(self, path: str, data: Any) -> None:
        tmp_path = path + ".tmp"
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, path)
        except OSError as e:
            log.error(f"Could not write {path}: {e}")
            raise

    def _session_path(self, session_id: str) -> str:
        return os.path.join(self._sessions_dir, f"{session_id}.json")

    # ── Sessions ──────────────────────────────────────────────────────────────

    def save_session(self, session: SessionData) -> None:
        self._write_json(self._session_path(session.id), session.to_dict())
        log.debug(f"Session {session.id} saved.")

    def load_session(self, session_id: str) -> Optional[SessionData]:
        data = self._read_json(self._session_path(session_id))
        if data is None:
            return None
        try:
            return SessionData.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            log.warning(f"Session {session_id} is malformed: {e}")
            return None

    def load_all_sessions(self) -> List[SessionData]:
        """Every readable session, newest first."""
        sessions = []
        for name in os.listdir(self._sessions_dir):
            if not name.endswith(".json"):
                continue
            session = self.load_session(name[:-len(".json")])
            if session is not None:
                sessions.append(session)
        return sorted(sessions, key=lambda s: s.start_time, reverse=True)

    def delete_session(self, session_id: str) -> bool:
        path = self._session_path(session_id)
        if not os.path.exists(path):
            return False
        os.remove(path)
        log.info(f"Session {session_id} deleted.")
        return True

    # ── Alerts ────────────────────────────────────────────────────────────────

    def _load_alert_dicts(self) -> List[dict]:
        data = self._read_json(self._alerts_path)
        return data if isinstance(data, list) else []

    def save_alert(self, alert: AlertEvent) -> None:
        """Append one alert to the log. Signature matches the AlertSystem sink."""
        alerts = self._load_alert_dicts()
        alerts.append(alert.to_dict())
        self._write_json(self._alerts_path, alerts)

    def load_alerts(self) -> List[AlertEvent]:
        alerts = []
        for item in self._load_alert_dicts():
            try:
                alerts.append(AlertEvent.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                log.warning(f"Skipping malformed alert record: {e}")
        return alerts

    def acknowledge_alert(self, alert_id: str) -> bool:
        """Mark one alert as read. Returns False if no alert has that id."""
        alerts = self._load_alert_dicts()
        found = False
        for item in alerts:
            if item.get("id") == alert_id:
                item["acknowledged"] = True
                found = True
        if found:
            self._write_json(self._alerts_path, alerts)
        return found

    # ── Export / maintenance ──────────────────────────────────────────────────

    def export_data(self) -> str:
        """All sessions and alerts as one pretty-printed JSON document."""
        return json.dumps(
            {
                "exportDate": datetime.now(timezone.utc).isoformat(),
                "sessions": [s.to_dict() for s in self.load_all_sessions()],
                "alerts": [a.to_dict() for a in self.load_alerts()],
            },
            indent=2,
        )

    def clear_all_data(self) -> None:
        for name in os.listdir(self._sessions_dir):
            if name.endswith(".json"):
                os.remove(os.path.join(self._sessions_dir, name))
        if os.path.exists(self._alerts_path):
            os.remove(self._alerts_path)
        log.info("SessionStore cleared.")
