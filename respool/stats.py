from collections import namedtuple

PoolStats = namedtuple('PoolStats', [
    'max_size',
    'available',
    'checked_out',
    'creating',
    'waiting',
    'total_created',
    'total_destroyed',
    'acquisitions',
    'releases',
    'waits',
    'timeouts',
    'creation_failures',
    'discarded',
    'invalid_releases',
    'total_wait_time',
    'max_wait_time',
])

def str_stats(stats: PoolStats) -> str:
    return ('live {}/{} (available {}, checked out {}, creating {}), waiting {}, '
            'created {}, destroyed {}, discarded {}, acquisitions {}, releases {}, '
            'waits {} (timeouts {}, avg {:.3f}s, max {:.3f}s)').format(
        stats.available + stats.checked_out + stats.creating,
        stats.max_size,
        stats.available,
        stats.checked_out,
        stats.creating,
        stats.waiting,
        stats.total_created,
        stats.total_destroyed,
        stats.discarded,
        stats.acquisitions,
        stats.releases,
        stats.waits,
        stats.timeouts,
        stats.total_wait_time / stats.waits if stats.waits > 0 else 0.0,
        stats.max_wait_time)
