import logging
import sqlite3
from typing import Optional

from ..resource import ResourceFactory

class SqliteConnectionFactory(ResourceFactory):

    '''
        Pooled sqlite3 connections.

        Connections are opened with check_same_thread disabled since a pooled
        connection is used by whichever thread borrowed it last.
    '''

    def __init__(self, db_path: str, isolation_level: Optional[str]=None, timeout: float=5.0):
        super().__init__()
        self._db_path = db_path
        self._isolation_level = isolation_level
        self._timeout = timeout

    def db_path(self) -> str:
        return self._db_path

    def create(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, timeout=self._timeout, check_same_thread=False, isolation_level=self._isolation_level)
        # By default, SQLite disables foreign keys.
        conn.execute('PRAGMA foreign_keys = ON')
        logging.debug('Opened database connection to [{}]'.format(self._db_path))
        return conn

    def reset(self, conn: sqlite3.Connection):
        try:
            in_transaction = conn.in_transaction
        except sqlite3.ProgrammingError:
            # Closed by the borrower, validate discards it.
            return
        if in_transaction:
            logging.debug('Rolling back abandoned transaction')
            conn.rollback()

    def validate(self, conn: sqlite3.Connection) -> bool:
        try:
            conn.execute('SELECT 1').fetchone()
            return True
        except sqlite3.Error as e:
            logging.warning('Database connection check failed: {}'.format(str(e)))
            return False

    def destroy(self, conn: sqlite3.Connection):
        conn.close()
        logging.debug('Closed database connection to [{}]'.format(self._db_path))
