"""
Live reload over Server-Sent Events.

Browsers connect with ``new EventSource('http://localhost:5678')`` and reload
the page when a ``reload`` event arrives::

    <script>
      new EventSource('http://localhost:5678').addEventListener('reload', function () {
        location.reload();
      });
    </script>
"""

import logging
import queue
import threading
import time
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

logger = logging.getLogger('StaticBuild.reload')

DEFAULT_PORT = 5678
KEEPALIVE_FRAME = b': keepalive\n\n'

# How often a connection wakes up to check for shutdown and send a keepalive
POLL_INTERVAL = 15.0


def format_server_sent_event(name, message=''):
    """Encode one SSE frame."""
    return f'event: {name}\ndata:{" " + message if message else ""}\n\n'.encode('utf-8')


RELOAD_FRAME = format_server_sent_event('reload')


class Broadcaster:
    """
    Fans frames out to every connected client.

    Each client owns a queue. Publishing puts the frame on a snapshot of the
    current queues and never blocks: a full queue simply misses the frame.
    """

    def __init__(self):
        self._subscribers = set()
        self._lock = threading.Lock()

    @property
    def subscriber_count(self):
        with self._lock:
            return len(self._subscribers)

    def subscribe(self, maxsize=100):
        client_queue = queue.Queue(maxsize=maxsize)
        with self._lock:
            self._subscribers.add(client_queue)
        return client_queue

    def unsubscribe(self, client_queue):
        with self._lock:
            self._subscribers.discard(client_queue)

    def publish(self, frame):
        """Deliver a frame to all current subscribers. Returns the number reached."""
        with self._lock:
            subscribers = frozenset(self._subscribers)

        count = 0
        for client_queue in subscribers:
            try:
                client_queue.put_nowait(frame)
                count += 1
            except queue.Full:
                pass
        return count


class EventStreamHandler(BaseHTTPRequestHandler):
    """Turns every GET into a persistent event stream."""

    protocol_version = 'HTTP/1.1'

    def do_GET(self):
        self.send_response(200)
        self.send_header('Content-Type', 'text/event-stream')
        self.send_header('Cache-Control', 'no-cache')
        self.send_header('Connection', 'keep-alive')
        self.send_header('Access-Control-Allow-Origin', '*')
        self.end_headers()
        self.wfile.flush()

        broadcaster = self.server.broadcaster
        client_queue = broadcaster.subscribe()
        logger.debug(f"Live reload client connected: {self.client_address[0]}")

        try:
            while not self.server.closing.is_set():
                try:
                    frame = client_queue.get(timeout=self.server.poll_interval)
                except queue.Empty:
                    frame = KEEPALIVE_FRAME
                if frame is None:
                    break
                self.wfile.write(frame)
                self.wfile.flush()
        except (BrokenPipeError, ConnectionResetError):
            logger.debug(f"Live reload client disconnected: {self.client_address[0]}")
        finally:
            broadcaster.unsubscribe(client_queue)
            self.close_connection = True

    def log_message(self, format, *args):
        logger.debug(format % args)


class ReloadServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, server_address, broadcaster, poll_interval=POLL_INTERVAL):
        self.broadcaster = broadcaster
        self.poll_interval = poll_interval
        self.closing = threading.Event()
        super().__init__(server_address, EventStreamHandler)


class HotReload:
    """
    A process-wide live reload channel.

    Args:
        port: Port of the event stream server. ``0`` picks a free port.
        host: Interface to bind.
    """

    def __init__(self, port=DEFAULT_PORT, host=''):
        self.host = host
        self.port = port
        self.broadcaster = Broadcaster()
        self._server = None
        self._thread = None
        self._timers = set()
        self._lock = threading.Lock()

    @property
    def is_running(self):
        return self._thread is not None and self._thread.is_alive()

    @property
    def server_port(self):
        """The bound port, useful when started with port 0."""
        return self._server.server_address[1] if self._server else None

    def start(self):
        """Start serving the event stream in a background thread."""
        if self.is_running:
            return

        self._server = ReloadServer((self.host, self.port), self.broadcaster)
        self._thread = threading.Thread(
            target=self._server.serve_forever,
            name='staticbuild-reload',
            daemon=True,
        )
        self._thread.start()
        logger.info(f"Live reload server listening on port {self.server_port}")

    def stop(self):
        """Cancel pending reloads, disconnect clients and stop the server."""
        with self._lock:
            timers, self._timers = self._timers, set()
        for timer in timers:
            timer.cancel()

        if self._server is not None:
            self._server.closing.set()
            self.broadcaster.publish(None)
            self._server.shutdown()
            self._server.server_close()
            self._server = None

        if self._thread is not None:
            self._thread.join(timeout=5.0)
            self._thread = None

    def reload(self, after_delay_ms=0):
        """
        Send one ``reload`` event to every connected client after a delay.

        The delay gives the filesystem time to settle before browsers fetch
        the rebuilt files.
        """
        delay = after_delay_ms / 1000.0
        deadline = time.monotonic() + delay
        timer = threading.Timer(delay, self._send_reload, args=(deadline,))
        timer.daemon = True
        with self._lock:
            self._timers = {t for t in self._timers if t.is_alive()}
            self._timers.add(timer)
        timer.start()
        return timer

    def _send_reload(self, deadline):
        # Timer waits can return marginally early
        remaining = deadline - time.monotonic()
        if remaining > 0:
            time.sleep(remaining)
        count = self.broadcaster.publish(RELOAD_FRAME)
        logger.debug(f"Sent reload to {count} client(s)")
