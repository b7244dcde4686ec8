import logging
import time
from threading import Event, Thread
from typing import Optional

from .error import DaemonError

class Daemon(object):

    '''
        Background thread calling run_once() every interval seconds until stopped.
    '''

    def __init__(self, name: str, interval: float, daemon: bool=True):
        super().__init__()
        if interval <= 0:
            raise ValueError('Daemon interval must be positive')
        self._name = name
        self._interval = interval
        self._daemon = daemon
        self._stop = Event()
        self._started = Event()
        self._stopped = Event()
        self._thread = None

    def name(self) -> str:
        return self._name

    def interval(self) -> float:
        return self._interval

    def is_running(self) -> bool:
        return self._started.is_set() and not self._stopped.is_set()

    def start(self):
        if self._thread is not None:
            raise DaemonError('Daemon {} already started!'.format(self._name))

        self._thread = Thread(name=self._name, target=self.run, daemon=self._daemon)
        self._thread.start()

    def wait_started(self, timeout: Optional[float]=None):
        if self._thread is None:
            raise DaemonError('Daemon {} not started!'.format(self._name))
        if not self._started.wait(timeout):
            raise DaemonError('Timed out waiting for {} daemon to start!'.format(self._name))

    def stop(self):
        if self._stop.is_set():
            return
        self._stop.set()
        logging.debug('Requested {} daemon stop'.format(self._name))

    def join(self, timeout: Optional[float]=None):
        if self._thread is None:
            raise DaemonError('Daemon {} not started!'.format(self._name))

        logging.debug('Joining {} daemon'.format(self._name))
        start_t = time.monotonic()
        if not self._stopped.wait(timeout):
            raise DaemonError('Timed out waiting for {} daemon to stop!'.format(self._name))
        if timeout is not None:
            timeout -= min(timeout, time.monotonic()-start_t)
        self._thread.join(timeout)
        if self._thread.is_alive():
            raise DaemonError('Timed out joining {} daemon!'.format(self._name))

        self._thread = None

    def run_once(self):
        pass

    def run(self):
        self._started.set()
        logging.debug('{} daemon started'.format(self._name))
        try:
            while not self._stop.wait(self._interval):
                try:
                    self.run_once()
                except Exception as e:
                    logging.error('Error in {} daemon: {}'.format(self._name, str(e)))
        finally:
            self._stopped.set()
            logging.debug('{} daemon stopped'.format(self._name))
