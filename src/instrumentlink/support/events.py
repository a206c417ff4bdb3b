"""
Event registries. Listeners are plain callables; firing an event calls each listener in the
order it was added, on the firing thread.
"""
import threading
from queue import Queue, Empty


class EventSource:
    """
    Handlers can be added and removed from any thread, and from within a handler.
    A fire in progress calls the handlers that were registered when it started.
    """

    def __init__(self):
        self._handlers = ()
        self._lock = threading.Lock()

    def __iadd__(self, handler):
        return self.add(handler)

    def __isub__(self, handler):
        return self.remove(handler)

    def add(self, handler):
        with self._lock:
            self._handlers += (handler,)
        return self

    def remove(self, handler):
        """ removes a handler. Handlers that were never added are ignored. """
        with self._lock:
            handlers = list(self._handlers)
            if handler in handlers:
                handlers.remove(handler)
                self._handlers = tuple(handlers)
        return self

    def handlers(self):
        return self._handlers

    def fire(self, *args, **kwargs):
        self._fire(*args, **kwargs)

    def fire_all(self, events):
        self._fire_all(events)

    def _fire_all(self, events):
        for e in events:
            self._fire(e)

    def _fire(self, *args, **kwargs):
        for handler in self._handlers:
            handler(*args, **kwargs)


class QueuedEventSource(EventSource):
    """
    Events fired are held until a thread calls publish(), and are then delivered on that thread.
    """
    def __init__(self):
        super().__init__()
        self.event_queue = Queue()

    def fire(self, event):
        self.event_queue.put(event)

    def fire_all(self, events):
        for e in events:
            self.event_queue.put(e)

    def publish(self):
        """ delivers the events queued so far. """
        events = []
        while True:
            try:
                events.append(self.event_queue.get_nowait())
            except Empty:
                break
        if events:
            self._fire_all(events)


class EventChannel:
    """
    A handler that can be added to an EventSource. Events fired are put on a queue
    so that a consumer on another thread can block until the next event arrives.

    >>> source = EventSource()
    >>> channel = EventChannel()
    >>> source += channel
    >>> source.fire('hello')
    >>> channel.get(timeout=1)
    'hello'
    """
    def __init__(self):
        self.queue = Queue()

    def __call__(self, event):
        self.queue.put(event)

    def get(self, timeout=None):
        """ retrieves the next event, waiting at most timeout seconds.
            Raises queue.Empty if no event arrives in time. """
        return self.queue.get(timeout=timeout)

    def drain(self):
        """ retrieves all events currently queued without blocking """
        events = []
        while True:
            try:
                events.append(self.queue.get_nowait())
            except Empty:
                return events
