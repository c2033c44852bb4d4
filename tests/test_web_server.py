"""
Tests for the demo web server.
"""

import http.client
import json
import pytest
import threading
import time
import urllib.error
import urllib.request
from unittest.mock import MagicMock

PORT = 19877
BASE = f'http://127.0.0.1:{PORT}'


class TestWebServer:
    """Tests for WebServer setup."""

    def test_web_server_initialization(self):
        """Test WebServer initialization with custom port."""
        from zip_visualizer.web import WebServer

        server = WebServer(port=9999, bind_address='127.0.0.1')
        assert server.port == 9999
        assert server.bind_address == '127.0.0.1'
        assert server.engine is None
        assert server._running is False

    def test_template_is_packaged(self):
        """The demo page template ships next to the server module."""
        from zip_visualizer.web import WebServer

        server = WebServer()
        assert (server.template_dir / 'zip.html').exists()
        assert (server.static_dir / 'zip.js').exists()


    def test_set_engine_wakes_event_streams(self):
        """Registering an engine hooks on_state_change to wake SSE clients."""
        from zip_visualizer.engine.zip_engine import ZipEngine
        from zip_visualizer.web import WebServer

        engine = ZipEngine(highlight_ms=10, move_ms=10)
        server = WebServer(port=9999, bind_address='127.0.0.1')
        server.set_engine(engine)
        assert engine.on_state_change is not None

        woken = []
        ready = threading.Event()

        def waiter():
            with server.state_changed:
                ready.set()
                woken.append(server.state_changed.wait(timeout=2.0))

        thread = threading.Thread(target=waiter)
        thread.start()
        assert ready.wait(timeout=2.0)
        engine.emit_a()
        engine.dispatcher.process_pending()
        thread.join(timeout=2.0)

        assert woken == [True]

    def test_snapshot_with_animations_is_plain_json(self, engine):
        """Snapshots with live animation progress serialize without a custom encoder."""
        engine.emit_a()
        engine.emit_b()
        engine.dispatcher.process_pending()

        data = json.loads(json.dumps(engine.snapshot().to_dict()))
        assert data['phase'] == "HIGHLIGHTING"
        assert len(data['animations']) == 2


class TestWebServerIntegration:
    """Integration tests against a live server (requires network)."""

    @pytest.fixture
    def live(self):
        """Running engine and web server on a high port."""
        from zip_visualizer.engine.zip_engine import ZipEngine
        from zip_visualizer.web import WebServer

        engine = ZipEngine(highlight_ms=10, move_ms=10)
        engine.start()
        server = WebServer(port=PORT, bind_address='127.0.0.1')
        server.set_engine(engine)
        server.start()

        # Give server time to start
        time.sleep(0.1)

        yield engine

        server.stop()
        engine.stop()

    def _get(self, path):
        return urllib.request.urlopen(BASE + path, timeout=2)

    def _post(self, path):
        request = urllib.request.Request(BASE + path, data=b'', method='POST')
        return urllib.request.urlopen(request, timeout=2)

    def test_health_endpoint(self, live):
        """Test /health endpoint returns OK."""
        try:
            response = self._get('/health')
            assert response.status == 200
            assert response.read() == b'OK\n'
        except urllib.error.URLError as e:
            pytest.skip(f"Network test failed: {e}")

    def test_actions_drive_engine(self, live):
        """POSTed emits end up as a committed pair in /api/state."""
        try:
            assert self._post('/api/emit/a').status == 202
            assert self._post('/api/emit/b').status == 202
            assert live.wait_until_idle(timeout=5.0)

            data = json.loads(self._get('/api/state').read())
            assert data['output_text'] == "[a0, b0]"
            assert data['phase'] == "IDLE"
            assert data['queue_a'] == []
        except urllib.error.URLError as e:
            pytest.skip(f"Network test failed: {e}")

    def test_reset_action(self, live):
        """POST /api/reset clears the state."""
        try:
            self._post('/api/emit/a')
            self._post('/api/reset')
            assert live.wait_until_idle(timeout=5.0)

            data = json.loads(self._get('/api/state').read())
            assert data['queue_a'] == []
            assert data['output'] is None
        except urllib.error.URLError as e:
            pytest.skip(f"Network test failed: {e}")

    def test_unknown_action_is_404(self, live):
        """Unknown POST routes are rejected."""
        try:
            with pytest.raises(urllib.error.HTTPError) as excinfo:
                self._post('/api/emit/c')
            assert excinfo.value.code == 404
        except urllib.error.URLError as e:
            if isinstance(e, urllib.error.HTTPError):
                raise
            pytest.skip(f"Network test failed: {e}")

    def test_malformed_content_length_is_400(self, live):
        """A non-numeric Content-Length is rejected without touching the engine."""
        try:
            conn = http.client.HTTPConnection('127.0.0.1', PORT, timeout=2)
            conn.putrequest('POST', '/api/emit/a')
            conn.putheader('Content-Length', 'abc')
            conn.endheaders()
            response = conn.getresponse()
            body = json.loads(response.read())
            conn.close()

            assert response.status == 400
            assert 'error' in body
            assert live.stats['emitted_a'] == 0
        except OSError as e:
            pytest.skip(f"Network test failed: {e}")

    def test_status_and_metrics(self, live):
        """/status is JSON and /metrics is Prometheus text."""
        try:
            status = json.loads(self._get('/status').read())
            assert status['phase'] == "IDLE"
            assert status['pairs_committed'] == 0

            metrics = self._get('/metrics').read().decode()
            assert 'zip_visualizer_pairs_committed_total 0' in metrics
            assert 'zip_visualizer_phase 0' in metrics
        except urllib.error.URLError as e:
            pytest.skip(f"Network test failed: {e}")

    def test_static_traversal_forbidden(self, live):
        """Paths escaping the static directory are refused."""
        try:
            with pytest.raises(urllib.error.HTTPError) as excinfo:
                self._get('/static/..%2F..%2Fweb_server.py')
            assert excinfo.value.code in (403, 404)
        except urllib.error.URLError as e:
            if isinstance(e, urllib.error.HTTPError):
                raise
            pytest.skip(f"Network test failed: {e}")


class TestPrometheusMetrics:
    """Tests for Prometheus metrics formatting."""

    def test_prometheus_format(self):
        """Test that metrics are properly formatted for Prometheus."""
        from zip_visualizer.web.web_server import WebRequestHandler

        handler = WebRequestHandler.__new__(WebRequestHandler)

        status = {
            'queue_a_length': 2,
            'queue_b_length': 0,
            'buffered_pairs': 1,
            'emitted_a': 5,
            'emitted_b': 3,
            'pairs_committed': 2,
            'resets': 1,
            'uptime_seconds': 12.0,
            'phase': 'MOVING',
        }

        metrics = handler._format_prometheus_metrics(status)

        assert 'zip_visualizer_queue_length{side="a"} 2' in metrics
        assert 'zip_visualizer_buffered_pairs 1' in metrics
        assert 'zip_visualizer_emitted_total{side="b"} 3' in metrics
        assert 'zip_visualizer_pairs_committed_total 2' in metrics
        assert 'zip_visualizer_phase 2' in metrics  # MOVING = 2

    def test_status_from_mock_engine(self):
        """Engine status is assembled from the snapshot and stats."""
        from zip_visualizer.interfaces.display_state import DisplaySnapshot
        from zip_visualizer.web.web_server import WebRequestHandler

        engine = MagicMock()
        engine.running = True
        engine.snapshot.return_value = DisplaySnapshot(phase="HIGHLIGHTING", buffered_pairs=3)
        engine.stats = {'pairs_committed': 4, 'start_time': time.time() - 10}

        handler = WebRequestHandler.__new__(WebRequestHandler)
        handler.engine = engine
        status = handler._get_engine_status()

        assert status['phase'] == "HIGHLIGHTING"
        assert status['buffered_pairs'] == 3
        assert status['pairs_committed'] == 4
        assert status['output'] == "Empty"
        assert status['uptime_seconds'] >= 10
