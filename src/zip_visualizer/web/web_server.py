"""
Web Server for the zip demo.

Provides HTTP endpoints for:
- The demo page (buttons plus queue/output display)
- JSON API for the display snapshot and the three user actions
- Health, status and Prometheus metrics
- Server-Sent Events pushing a snapshot whenever the state changes

Usage:
    from zip_visualizer.web import WebServer

    server = WebServer(port=8080)
    server.set_engine(zip_engine)
    server.start()
"""

import json
import logging
import mimetypes
import threading
import time
from http.server import HTTPServer, BaseHTTPRequestHandler
from socketserver import ThreadingMixIn
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlparse

logger = logging.getLogger(__name__)


# POST /api/<action> routes
ACTIONS = {
    '/api/emit/a': 'emit_a',
    '/api/emit/b': 'emit_b',
    '/api/reset': 'reset',
}


class WebRequestHandler(BaseHTTPRequestHandler):
    """HTTP request handler for the demo endpoints."""

    # Class-level references
    engine = None
    static_dir: Optional[Path] = None
    template_dir: Optional[Path] = None
    state_changed: Optional[threading.Condition] = None
    sse_interval: float = 0.1

    def log_message(self, format, *args):
        """Suppress default HTTP logging for cleaner output."""
        pass

    def do_GET(self):
        """Handle GET requests."""
        path = urlparse(self.path).path

        if path == '/' or path == '':
            self._redirect('/zip')
        elif path == '/zip':
            self._serve_template('zip.html')
        elif path == '/health':
            self._handle_health()
        elif path == '/status':
            self._handle_status()
        elif path == '/metrics':
            self._handle_metrics()
        elif path == '/api/state':
            self._handle_api_state()
        elif path == '/events':
            self._handle_sse()
        elif path.startswith('/static/'):
            self._serve_static(path[8:])  # Remove '/static/' prefix
        else:
            self.send_error(404, "Not Found")

    def do_POST(self):
        """Handle the user-trigger actions."""
        path = urlparse(self.path).path.rstrip('/')

        # Drain any request body; actions take no parameters
        try:
            length = int(self.headers.get('Content-Length') or 0)
        except ValueError:
            self._send_json({'error': 'Invalid Content-Length'}, 400)
            return
        if length < 0:
            self._send_json({'error': 'Invalid Content-Length'}, 400)
            return
        if length:
            self.rfile.read(length)

        action = ACTIONS.get(path)
        if action is None:
            self._send_json({'error': f'Unknown action: {path}'}, 404)
            return
        if not self.engine:
            self._send_json({'error': 'No engine connected'}, 503)
            return

        getattr(self.engine, action)()
        self._send_json({'accepted': action}, 202)

    def _redirect(self, location: str):
        """Send HTTP redirect."""
        self.send_response(302)
        self.send_header('Location', location)
        self.end_headers()

    def _send_json(self, data: Any, status: int = 200):
        """Send JSON response."""
        self.send_response(status)
        self.send_header('Content-Type', 'application/json')
        self.send_header('Access-Control-Allow-Origin', '*')
        self.end_headers()
        self.wfile.write(json.dumps(data, indent=2).encode())

    def _send_html(self, content: str, status: int = 200):
        """Send HTML response."""
        self.send_response(status)
        self.send_header('Content-Type', 'text/html; charset=utf-8')
        self.end_headers()
        self.wfile.write(content.encode())

    def _serve_template(self, template_name: str):
        """Serve an HTML template."""
        if not self.template_dir:
            self.send_error(500, "Template directory not configured")
            return

        template_path = self.template_dir / template_name
        if not template_path.exists():
            self.send_error(404, f"Template not found: {template_name}")
            return

        try:
            content = template_path.read_text()
            self._send_html(content)
        except OSError as e:
            self.send_error(500, f"Error reading template: {e}")

    def _serve_static(self, file_path: str):
        """Serve a static file."""
        if not self.static_dir:
            self.send_error(500, "Static directory not configured")
            return

        # Security: prevent directory traversal by checking for ..
        if '..' in file_path:
            self.send_error(403, "Forbidden")
            return

        full_path = self.static_dir / file_path

        # Verify resolved path is within static_dir
        try:
            full_path.resolve().relative_to(self.static_dir.resolve())
        except ValueError:
            self.send_error(403, "Forbidden")
            return

        if not full_path.is_file():
            self.send_error(404, f"File not found: {file_path}")
            return

        try:
            content = full_path.read_bytes()
            mime_type, _ = mimetypes.guess_type(str(full_path))

            self.send_response(200)
            self.send_header('Content-Type', mime_type or 'application/octet-stream')
            self.send_header('Content-Length', len(content))
            self.end_headers()
            self.wfile.write(content)
        except OSError as e:
            self.send_error(500, f"Error reading file: {e}")

    # =========================================================================
    # Health endpoints
    # =========================================================================

    def _handle_health(self):
        """Basic health check."""
        self.send_response(200)
        self.send_header('Content-Type', 'text/plain')
        self.end_headers()
        self.wfile.write(b'OK\n')

    def _handle_status(self):
        """JSON status with engine counters."""
        if not self.engine:
            self._send_json({'error': 'No engine connected'}, 503)
            return

        try:
            self._send_json(self._get_engine_status())
        except Exception as e:
            self._send_json({'error': str(e)}, 500)

    def _handle_metrics(self):
        """Prometheus-compatible metrics."""
        if not self.engine:
            self.send_response(503)
            self.send_header('Content-Type', 'text/plain')
            self.end_headers()
            self.wfile.write(b'# No engine connected\n')
            return

        try:
            metrics = self._format_prometheus_metrics(self._get_engine_status())
            self.send_response(200)
            self.send_header('Content-Type', 'text/plain; version=0.0.4')
            self.end_headers()
            self.wfile.write(metrics.encode())
        except Exception as e:
            self.send_response(500)
            self.send_header('Content-Type', 'text/plain')
            self.end_headers()
            self.wfile.write(f'# Error: {e}\n'.encode())

    def _get_engine_status(self) -> Dict[str, Any]:
        """Get current status from the engine."""
        snapshot = self.engine.snapshot()
        stats = self.engine.stats
        return {
            'timestamp': time.time(),
            'running': self.engine.running,
            'phase': snapshot.phase,
            'queue_a_length': len(snapshot.queue_a),
            'queue_b_length': len(snapshot.queue_b),
            'buffered_pairs': snapshot.buffered_pairs,
            'active_animations': len(snapshot.animations),
            'output': snapshot.output_text,
            'emitted_a': stats.get('emitted_a', 0),
            'emitted_b': stats.get('emitted_b', 0),
            'pairs_zipped': stats.get('pairs_zipped', 0),
            'pairs_committed': stats.get('pairs_committed', 0),
            'resets': stats.get('resets', 0),
            'uptime_seconds': time.time() - stats.get('start_time', time.time()),
        }

    def _format_prometheus_metrics(self, status: Dict[str, Any]) -> str:
        """Format status as Prometheus metrics."""
        lines = [
            '# HELP zip_visualizer_queue_length Items waiting in a display queue',
            '# TYPE zip_visualizer_queue_length gauge',
            f'zip_visualizer_queue_length{{side="a"}} {status.get("queue_a_length", 0)}',
            f'zip_visualizer_queue_length{{side="b"}} {status.get("queue_b_length", 0)}',
            '',
            '# HELP zip_visualizer_buffered_pairs Zipped pairs waiting to be drained',
            '# TYPE zip_visualizer_buffered_pairs gauge',
            f'zip_visualizer_buffered_pairs {status.get("buffered_pairs", 0)}',
            '',
            '# HELP zip_visualizer_emitted_total Items emitted per side',
            '# TYPE zip_visualizer_emitted_total counter',
            f'zip_visualizer_emitted_total{{side="a"}} {status.get("emitted_a", 0)}',
            f'zip_visualizer_emitted_total{{side="b"}} {status.get("emitted_b", 0)}',
            '',
            '# HELP zip_visualizer_pairs_committed_total Pairs committed to the output slot',
            '# TYPE zip_visualizer_pairs_committed_total counter',
            f'zip_visualizer_pairs_committed_total {status.get("pairs_committed", 0)}',
            '',
            '# HELP zip_visualizer_resets_total Reset actions processed',
            '# TYPE zip_visualizer_resets_total counter',
            f'zip_visualizer_resets_total {status.get("resets", 0)}',
            '',
            '# HELP zip_visualizer_uptime_seconds Engine uptime in seconds',
            '# TYPE zip_visualizer_uptime_seconds gauge',
            f'zip_visualizer_uptime_seconds {status.get("uptime_seconds", 0):.1f}',
            '',
            '# HELP zip_visualizer_phase Coordinator phase (0=IDLE, 1=HIGHLIGHTING, 2=MOVING)',
            '# TYPE zip_visualizer_phase gauge',
        ]

        phase_map = {'IDLE': 0, 'HIGHLIGHTING': 1, 'MOVING': 2}
        lines.append(f'zip_visualizer_phase {phase_map.get(status.get("phase", "IDLE"), 0)}')
        lines.append('')
        return '\n'.join(lines)

    # =========================================================================
    # Display API
    # =========================================================================

    def _handle_api_state(self):
        """Current display snapshot."""
        if not self.engine:
            self._send_json({'error': 'No engine connected'}, 503)
            return
        self._send_json(self.engine.snapshot().to_dict())

    # =========================================================================
    # Server-Sent Events
    # =========================================================================

    def _handle_sse(self):
        """Server-Sent Events endpoint; pushes a snapshot on every state change."""
        self.send_response(200)
        self.send_header('Content-Type', 'text/event-stream')
        self.send_header('Cache-Control', 'no-cache')
        self.send_header('Connection', 'keep-alive')
        self.send_header('Access-Control-Allow-Origin', '*')
        self.end_headers()

        last_version = -1
        try:
            while True:
                if self.engine:
                    snapshot = self.engine.snapshot()
                    # Keep streaming while animating so progress updates reach the page
                    if snapshot.version != last_version or snapshot.animations:
                        last_version = snapshot.version
                        data = json.dumps(snapshot.to_dict())
                        self.wfile.write(f"data: {data}\n\n".encode())
                        self.wfile.flush()

                self._wait_for_change()

        except (BrokenPipeError, ConnectionResetError):
            pass  # Client disconnected

    def _wait_for_change(self):
        """Sleep until the engine publishes a new snapshot or sse_interval elapses."""
        if self.state_changed is None:
            time.sleep(self.sse_interval)
            return
        with self.state_changed:
            self.state_changed.wait(timeout=self.sse_interval)


class WebServer:
    """
    HTTP server for the zip demo.

    Runs in a background thread and provides:
    - Demo page with Emit A / Emit B / Reset buttons
    - JSON API endpoints for state and actions
    - Server-Sent Events for live updates
    """

    def __init__(self, port: int = 8080, bind_address: str = '0.0.0.0'):
        """
        Initialize the web server.

        Args:
            port: HTTP port to listen on
            bind_address: Address to bind to (default: all interfaces)
        """
        self.port = port
        self.bind_address = bind_address
        self.server: Optional[HTTPServer] = None
        self.thread: Optional[threading.Thread] = None
        self.engine = None
        self._running = False

        # Set up paths for static files and templates
        self.web_dir = Path(__file__).parent
        self.static_dir = self.web_dir / 'static'
        self.template_dir = self.web_dir / 'templates'

        # Configure handler class
        WebRequestHandler.static_dir = self.static_dir
        WebRequestHandler.template_dir = self.template_dir

        # Woken by the engine after every dispatcher event
        self.state_changed = threading.Condition()
        WebRequestHandler.state_changed = self.state_changed

    def set_engine(self, engine):
        """
        Connect to a ZipEngine.

        Args:
            engine: ZipEngine instance
        """
        self.engine = engine
        WebRequestHandler.engine = engine
        engine.on_state_change = self._on_state_change

    def _on_state_change(self, snapshot):
        with self.state_changed:
            self.state_changed.notify_all()

    def start(self):
        """Start the web server in a background thread."""
        if self._running:
            logger.warning("Web server already running")
            return

        try:
            # Use ThreadingMixIn for concurrent request handling
            class ThreadedHTTPServer(ThreadingMixIn, HTTPServer):
                daemon_threads = True

            self.server = ThreadedHTTPServer(
                (self.bind_address, self.port),
                WebRequestHandler
            )
            self._running = True

            self.thread = threading.Thread(
                target=self._serve,
                name="WebServer",
                daemon=True
            )
            self.thread.start()

            logger.info(f"Web server started on http://{self.bind_address}:{self.port}")
            logger.info(f"  GET  /zip        - Demo page")
            logger.info(f"  GET  /api/state  - Display snapshot")
            logger.info(f"  POST /api/emit/a, /api/emit/b, /api/reset")
            logger.info(f"  GET  /events     - Server-Sent Events")

        except OSError as e:
            logger.error(f"Failed to start web server: {e}")
            self._running = False

    def _serve(self):
        """Server loop (runs in background thread)."""
        self.server.serve_forever()

    def stop(self):
        """Stop the web server."""
        self._running = False
        if self.server:
            self.server.shutdown()
            self.server.server_close()
            self.server = None
        if self.thread:
            self.thread.join(timeout=2.0)
        logger.info("Web server stopped")
