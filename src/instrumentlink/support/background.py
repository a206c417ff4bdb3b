"""
Runs a unit of work repeatedly on a background thread until it is asked to stop.
"""
import logging
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)


class BackgroundLoop:
    """ Continually runs a given function on a background thread.
        Exceptions are logged and posted to a given handler
        The background thread is registered as a daemon.

        The stop_event is the cancellation signal for the loop. Subclasses should use
        wait() for any delays so that a stop request interrupts them.
    """

    def __init__(self, fn: Callable=None, args=(), stop_event: threading.Event=None, name=None, log=logger):
        """
        :param fn the function to run
        :param args arguments to pass to fn
        :param stop_event the event that signals the loop to stop. A new event is created when not given.
        :param name the name given to the background thread
        """
        self.fn = fn
        self.args = args
        self.stop_event = stop_event if stop_event is not None else threading.Event()
        self.background_thread = None
        self.name = name
        self.logger = log

    def start(self):
        """
        Starts the background thread. Calling start() on a loop that is already started does nothing.
        """
        if self.background_thread is None:
            t = threading.Thread(target=self._run, name=self.name)
            t.daemon = True
            self.background_thread = t
            t.start()

    def exception_handler(self, e):
        self.logger.exception(e)

    def _run(self):
        """ The processing loop for the background thread.
             Invokes the callable for as long as the stop signal is not received.
        """
        self._do(self.startup)
        while self.running():
            self._do(self.loop)
        self._do(self.shutdown)
        self.logger.debug("background thread %s exiting", self.name or '')

    def _do(self, callme):
        """ runs a function and captures any exceptions """
        try:
            time.sleep(0)
            callme()
        except Exception as e:
            time.sleep(0)
            self.exception_handler(e)

    def startup(self):
        """ template method called when the thread starts"""
        pass

    def loop(self):
        self.fn(*self.args)

    def shutdown(self):
        """ template method called when the thread exits """
        pass

    def running(self):
        return not self.stop_event.is_set()

    def wait(self, seconds):
        """ waits for the given number of seconds, returning early if the loop is stopped.
        :return: True if the loop was stopped while waiting.
        """
        return self.stop_event.wait(seconds)

    @property
    def alive(self):
        thread = self.background_thread
        return thread is not None and thread.is_alive()

    def stop(self, timeout=None):
        """ signals the loop to stop and waits for the background thread to exit.
            When called from the background thread itself, the loop is only signalled.
        """
        event = self.stop_event
        event.set()
        thread = self.background_thread
        if thread and thread is not threading.current_thread():
            thread.join(timeout)
