import logging
from typing import Optional

from .daemon import Daemon
from .pool import Pool

class PoolMaintainer(Daemon):

    '''
        Periodically shrinks the pool's idle resources down to its idle target.
    '''

    def __init__(self, pool: Pool, shrink_interval: float, idle_target: Optional[int]=None, daemon: bool=True):
        super().__init__('{}-maintainer'.format(pool.name()), shrink_interval, daemon)
        self._pool = pool
        self._idle_target = pool.idle_target() if idle_target is None else idle_target
        self._evicted = 0

        logging.debug('Pool [{}] shrink interval: [{}s]'.format(pool.name(), shrink_interval))
        logging.debug('Pool [{}] idle target: [{}]'.format(pool.name(), self._idle_target))

    def pool(self) -> Pool:
        return self._pool

    def evicted(self) -> int:
        return self._evicted

    def run_once(self):
        if self._pool.is_closed():
            self.stop()
            return
        self._evicted += self._pool.shrink_idle(self._idle_target)
