"""
server/websocket_server.py — Flask-SocketIO WebSocket Bridge
Pushes per-frame monitor metrics and alert events to the browser HUD, and
lets the HUD read and acknowledge the alert log.

Run standalone: python -m server.websocket_server
Or use MonitorServer.start_background() from main.py.
"""

import threading
import time
from typing import Optional

from flask import Flask, jsonify
from flask_cors import CORS
from flask_socketio import SocketIO

import config
from core.logger import get_logger
from monitor_engine.data_structures import AlertEvent
from storage.session_store import SessionStore

log = get_logger(__name__)


class MonitorServer:
    """
    Lightweight Flask-SocketIO server that bridges the monitor pipeline to
    the HTML HUD via WebSocket.

    Usage:
        server = MonitorServer(store)
        server.start_background()       # non-blocking
        server.emit_frame(state.to_payload())
        server.emit_alert(event)
        server.stop()
    """

    def __init__(
        self,
        store: Optional[SessionStore] = None,
        host: str = config.SERVER_HOST,
        port: int = config.SERVER_PORT,
        cors_origins: str = config.SERVER_CORS_ALLOWED_ORIGINS,
    ):
        self.host = host
        self.port = port
        self.store = store
        self._running = False
        self._thread: Optional[threading.Thread] = None

        # ── Flask + SocketIO setup ─────────────────────────────────────────
        self.app = Flask(__name__, static_folder=None)
        CORS(self.app, origins=cors_origins)

        self.socketio = SocketIO(
            self.app,
            cors_allowed_origins=cors_origins,
            async_mode="threading",
            logger=False,
            engineio_logger=False,
        )

        self._register_routes()
        self._register_events()

        # Track connected clients
        self._client_count: int = 0

    # ──────────────────────────────────────────────────────────────────────────
    # Flask routes
    # ──────────────────────────────────────────────────────────────────────────

    def _register_routes(self) -> None:
        @self.app.route("/health")
        def health():
            return jsonify({
                "status": "ok",
                "clients": self._client_count,
                "server": "Facial Affect Monitor bridge",
                "port": self.port,
                "running": self._running,
            })

        @self.app.route("/alerts", methods=["GET"])
        def list_alerts():
            if self.store is None:
                return jsonify({"error": "no alert store configured"}), 503
            return jsonify([a.to_dict() for a in self.store.load_alerts()])

        @self.app.route("/alerts/<alert_id>/ack", methods=["POST"])
        def acknowledge(alert_id: str):
            if self.store is None:
                return jsonify({"error": "no alert store configured"}), 503
            if not self.store.acknowledge_alert(alert_id):
                return jsonify({"error": f"unknown alert {alert_id}"}), 404
            log.info(f"Alert {alert_id} acknowledged from HUD.")
            return jsonify({"id": alert_id, "acknowledged": True})

    # ──────────────────────────────────────────────────────────────────────────
    # SocketIO events
    # ──────────────────────────────────────────────────────────────────────────

    def _register_events(self) -> None:
        @self.socketio.on("connect")
        def on_connect():
            self._client_count += 1
            log.info(f"HUD connected. Clients: {self._client_count}")

        @self.socketio.on("disconnect")
        def on_disconnect(*_):
            self._client_count = max(0, self._client_count - 1)
            log.info(f"HUD disconnected. Clients: {self._client_count}")

        @self.socketio.on("ping_monitor")
        def on_ping(data=None):
            self.socketio.emit("pong_monitor", {"status": "alive"})

    # ──────────────────────────────────────────────────────────────────────────
    # Data emission
    # ──────────────────────────────────────────────────────────────────────────

    def emit_frame(self, data: dict) -> None:
        """
        Broadcast a frame payload (MonitorState.to_payload()) to all HUDs.
        No-op while the server is not running.
        """
        if not self._running:
            return
        try:
            self.socketio.emit(config.EMIT_FRAME_EVENT, data)
        except Exception as exc:
            log.debug(f"Frame emit error: {exc}")

    def emit_alert(self, event: AlertEvent) -> None:
        """Broadcast one alert event. Usable directly as an on_alert callback."""
        if not self._running:
            return
        try:
            self.socketio.emit(config.EMIT_ALERT_EVENT, event.to_dict())
        except Exception as exc:
            log.warning(f"Alert emit error for {event.id}: {exc}")

    # ──────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────────────────────────

    def start_background(self) -> None:
        """
        Start the SocketIO server in a background daemon thread.
        Returns immediately; call emit_frame() from the main loop.
        """
        if self._running:
            log.warning("Server already running.")
            return

        self._running = True
        self._thread = threading.Thread(
            target=self._run_server,
            daemon=True,
            name="monitor-ws-server",
        )
        self._thread.start()
        time.sleep(0.5)   # give the server time to bind the port
        log.info(
            f"Server started at http://{self.host}:{self.port}  "
            f"(health: http://localhost:{self.port}/health)"
        )

    def _run_server(self) -> None:
        """Internal: run Flask-SocketIO (blocking, called in daemon thread)."""
        self.socketio.run(
            self.app,
            host=self.host,
            port=self.port,
            use_reloader=False,
            log_output=False,
            allow_unsafe_werkzeug=True,
        )

    def stop(self) -> None:
        """Signal the server to stop (best-effort for daemon thread)."""
        self._running = False
        log.info("Server stopped.")

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def client_count(self) -> int:
        return self._client_count


# ──────────────────────────────────────────────────────────────────────────────
# Smoke test — run standalone with a ticking fake stream
# ──────────────────────────────────────────────────────────────────────────────
if __name__ == "__main__":
    import math

    server = MonitorServer(SessionStore())
    server.start_background()

    log.info("Streaming fake monitor data every 33 ms… press Ctrl+C to stop.")

    frame = 0
    try:
        while True:
            t = frame / 30.0
            server.emit_frame({
                "frame":          frame,
                "faceDetected":   True,
                "ear":            round(0.30 + math.sin(t * 0.3) * 0.03, 3),
                "yaw":            round(math.sin(t * 0.20) * 0.4, 3),
                "pitch":          round(math.sin(t * 0.15) * 0.2, 3),
                "blinkCount":     frame // 90,
                "blinkRate":      15,
                "attentionScore": round(0.8 + math.sin(t * 0.1) * 0.2, 3),
                "emotions":       {"neutral": 0.7, "happy": 0.2, "sad": 0.1},
                "alerts":         [],
            })
            frame += 1
            time.sleep(1 / 30)
    except KeyboardInterrupt:
        server.stop()
