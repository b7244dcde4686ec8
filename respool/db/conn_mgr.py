from contextlib import contextmanager
import logging
import sqlite3
from typing import Iterator

from ..config import get_pool
from ..error import PoolExhaustedError
from ..handle import Handle
from ..pool import Pool
from .conn_factory import SqliteConnectionFactory

class DbConnectionManager(object):

    '''
        Hands out pooled database connections.

        db_config - section with sqlite-db-path plus the pool keys
                    (max-size defaults to connection-pool-size, then 5).
    '''

    def __init__(self, db_config, conn_factory: SqliteConnectionFactory=None):
        if conn_factory is None:
            conn_factory = SqliteConnectionFactory(db_config.get('sqlite-db-path', ':memory:'))
        pool_config = dict(db_config)
        pool_config.setdefault('max-size', db_config.get('connection-pool-size', '5'))
        pool_config.setdefault('acquire-timeout', db_config.get('connection-pool-timeout', '30'))
        pool_config.setdefault('name', 'db')

        logging.debug('Initializing database connection pool')
        self._conn_factory = conn_factory
        self._conn_pool = get_pool(conn_factory, pool_config)
        logging.debug('Initialized database connection pool')

    def conn_factory(self) -> SqliteConnectionFactory:
        return self._conn_factory

    def conn_pool(self) -> Pool:
        return self._conn_pool

    def db_connect(self) -> Handle:
        try:
            return self._conn_pool.acquire()
        except PoolExhaustedError:
            logging.error('Database connection pool timeout')
            raise

    def db_close(self, handle: Handle):
        self._conn_pool.release(handle)

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        handle = self.db_connect()
        try:
            yield handle.resource()
        finally:
            self.db_close(handle)

    def close(self):
        self._conn_pool.close()
