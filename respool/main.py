import argparse
import logging
from threading import Thread
import time

from .config import get_pool, get_pool_maintainer, load_config, DEFAULT_POOL_SECTION
from .db.conn_factory import SqliteConnectionFactory
from .error import ConfigError, PoolError, PoolExhaustedError
from .pool import Pool
from .stats import str_stats
from .util.logging import config_logging

def stress_worker(pool: Pool, iterations: int, hold_time: float, results: dict):
    for _ in range(iterations):
        try:
            with pool.acquire() as conn:
                conn.execute('SELECT 1').fetchone()
                if hold_time > 0:
                    time.sleep(hold_time)
            results['ok'] += 1
        except PoolExhaustedError:
            results['exhausted'] += 1
        except PoolError as e:
            logging.error('Worker failed: {}'.format(str(e)))
            results['failed'] += 1

def run_stress(pool: Pool, threads: int, iterations: int, hold_time: float) -> dict:
    results = []
    workers = []
    for i in range(threads):
        worker_results = {'ok': 0, 'exhausted': 0, 'failed': 0}
        results.append(worker_results)
        workers.append(Thread(name='stress-worker-{}'.format(i), target=stress_worker, args=(pool, iterations, hold_time, worker_results)))

    start_t = time.monotonic()
    for worker in workers:
        worker.start()
    for worker in workers:
        worker.join()
    elapsed = time.monotonic() - start_t

    totals = {'ok': 0, 'exhausted': 0, 'failed': 0, 'elapsed': elapsed}
    for worker_results in results:
        for key, count in worker_results.items():
            totals[key] += count
    return totals

def stress_main():
    argparser = argparse.ArgumentParser(description='Run worker threads against a pool of SQLite connections.')
    argparser.add_argument('--config', default='config.ini')
    argparser.add_argument('--section', default=DEFAULT_POOL_SECTION)
    argparser.add_argument('--threads', type=int, default=8)
    argparser.add_argument('--iterations', type=int, default=100)
    argparser.add_argument('--hold-time', type=float, default=0.001)
    args = argparser.parse_args()

    config = load_config(args.config)
    log_config = config['logging'] if config.has_section('logging') else {}
    config_logging(log_config.get('log-level', 'INFO'))

    if not config.has_section(args.section):
        raise ConfigError('Config section [{}] not found!'.format(args.section), ConfigError.MISSING_CONFIG)
    pool_config = config[args.section]
    db_config = config['db'] if config.has_section('db') else {}

    factory = SqliteConnectionFactory(db_config.get('sqlite-db-path', ':memory:'))
    with get_pool(factory, pool_config) as pool:
        maintainer = get_pool_maintainer(pool, pool_config)
        if maintainer is not None:
            maintainer.start()
            maintainer.wait_started()

        logging.info('Running {} threads x {} iterations against pool [{}]'.format(args.threads, args.iterations, pool.name()))
        totals = run_stress(pool, args.threads, args.iterations, args.hold_time)

        if maintainer is not None:
            maintainer.stop()
            maintainer.join()

        print('Completed {} acquisitions in {:.2f}s ({} exhausted, {} failed)'.format(totals['ok'], totals['elapsed'], totals['exhausted'], totals['failed']))
        print(str_stats(pool.stats()))

if __name__ == '__main__':
    stress_main()
