from .error import (
    CreationFailedError,
    DoubleReleaseError,
    PoolClosedError,
    PoolError,
    PoolExhaustedError,
)
from .handle import Handle
from .pool import Pool
from .resource import CallableResourceFactory, ResourceFactory
from .stats import PoolStats

__all__ = [
    'CallableResourceFactory',
    'CreationFailedError',
    'DoubleReleaseError',
    'Handle',
    'Pool',
    'PoolClosedError',
    'PoolError',
    'PoolExhaustedError',
    'PoolStats',
    'ResourceFactory',
]
