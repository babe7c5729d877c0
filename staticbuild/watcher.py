"""
File watcher: turns bursts of filesystem events into single change signals.

watchfiles reports raw changes from a background thread. Every raw change
restarts a debounce timer; when the timer runs out the registered callbacks
are called once. A paused watcher ignores raw changes and drops any signal
that comes due while it is paused.
"""

import enum
import logging
import os
import threading

from watchfiles import watch

from .errors import WatcherError

logger = logging.getLogger('StaticBuild.watcher')

DEFAULT_DEBOUNCE_MS = 300

# Grouping done inside watchfiles before events reach the debouncer
RAW_DEBOUNCE_MS = 50
RAW_STEP_MS = 10


class WatcherState(enum.Enum):
    IDLE = 'idle'
    ACTIVE = 'active'
    PAUSED = 'paused'


class Debouncer:
    """
    Calls ``callback`` once ``wait`` seconds after the last ``trigger()``.

    Each trigger cancels the pending timer and starts a new one.
    """

    def __init__(self, wait, callback):
        self.wait = wait
        self.callback = callback
        self.timer = None
        self.lock = threading.Lock()

    @property
    def pending(self):
        with self.lock:
            return self.timer is not None and self.timer.is_alive()

    def trigger(self):
        with self.lock:
            if self.timer:
                self.timer.cancel()
            self.timer = threading.Timer(self.wait, self.callback)
            self.timer.daemon = True
            self.timer.start()

    def cancel(self):
        with self.lock:
            if self.timer:
                self.timer.cancel()
                self.timer = None


class FileWatcher:
    """
    Watches a source tree recursively and emits debounced change signals.

    Args:
        source_path: Directory to watch.
        debounce_ms: Quiet period after the last raw event before a change
            signal fires.
        ignore_paths: Directories whose changes are ignored, such as an
            output directory inside the source tree.
    """

    def __init__(self, source_path, debounce_ms=DEFAULT_DEBOUNCE_MS, ignore_paths=()):
        self.source_path = source_path
        self.debounce_ms = debounce_ms
        self.ignore_paths = [os.path.abspath(p) for p in ignore_paths]
        self.error = None
        self._state = WatcherState.IDLE
        self._state_lock = threading.Lock()
        self._callbacks = []
        self._debouncer = Debouncer(debounce_ms / 1000.0, self._emit_change)
        self._stop_event = threading.Event()
        self._thread = None

    @property
    def state(self):
        with self._state_lock:
            return self._state

    @property
    def is_running(self):
        """Whether the watcher background thread is active."""
        return self._thread is not None and self._thread.is_alive()

    def on_change(self, callback):
        """Register a callback taking no arguments. Returns the callback."""
        self._callbacks.append(callback)
        return callback

    def start(self):
        """Start watching in a background thread."""
        if self.is_running:
            return

        self.error = None
        self._stop_event.clear()
        self._set_state(WatcherState.ACTIVE)
        self._thread = threading.Thread(
            target=self._watch_loop,
            name='staticbuild-watcher',
            daemon=True,
        )
        self._thread.start()

    def stop(self):
        """Stop watching and drop any pending change signal."""
        self._stop_event.set()
        self._debouncer.cancel()
        if self._thread is not None:
            self._thread.join(timeout=5.0)
            self._thread = None
        self._set_state(WatcherState.IDLE)

    def pause(self):
        with self._state_lock:
            if self._state is WatcherState.ACTIVE:
                self._state = WatcherState.PAUSED

    def resume(self):
        with self._state_lock:
            if self._state is WatcherState.PAUSED:
                self._state = WatcherState.ACTIVE

    def notify(self):
        """Feed one raw filesystem event into the debouncer."""
        if self.state is not WatcherState.ACTIVE:
            return
        self._debouncer.trigger()

    def is_ignored(self, path):
        path = os.path.abspath(path)
        return any(
            os.path.commonpath([ignored, path]) == ignored
            for ignored in self.ignore_paths
        )

    def _emit_change(self):
        if self.state is not WatcherState.ACTIVE:
            logger.debug("Dropping change signal while paused")
            return
        for callback in list(self._callbacks):
            callback()

    def _set_state(self, state):
        with self._state_lock:
            self._state = state

    def _watch_loop(self):
        """Background thread: run watchfiles and feed raw events to the debouncer."""
        try:
            for raw_changes in watch(
                self.source_path,
                stop_event=self._stop_event,
                debounce=RAW_DEBOUNCE_MS,
                step=RAW_STEP_MS,
                raise_interrupt=False,
            ):
                for change_type, path in raw_changes:
                    if self.is_ignored(path):
                        continue
                    logger.debug(f"{change_type.name}: {path}")
                    self.notify()
        except Exception as e:
            self.error = WatcherError(f"File watcher error: {e}")
            logger.error(str(self.error))
        finally:
            self._debouncer.cancel()
            self._set_state(WatcherState.IDLE)
