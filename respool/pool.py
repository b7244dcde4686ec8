from collections import deque
import itertools
import logging
from threading import Event, Lock
import time
from typing import Any, Callable, Optional, Union

from .error import CreationFailedError, DoubleReleaseError, PoolClosedError, PoolExhaustedError, ValidationFailedError
from .handle import Handle
from .resource import CallableResourceFactory, ResourceFactory
from .stats import PoolStats

# Waiter grants other than a Handle.
_CREATE = object()
_CLOSED = object()

class Pool(object):

    '''
        Thread-safe pool for reusable resources.

        factory - ResourceFactory (or a plain callable creating resources).
        max_size - maximum number of live resources, idle and checked out.
        acquire_timeout - default acquire timeout in seconds, None blocks indefinitely.
        validate_on_release - validate returned resources, defaults to whether the factory supports it.
        idle_target - number of idle resources shrink_idle() keeps by default.
        strict - raise DoubleReleaseError on bad releases, otherwise log and ignore them.
        name - pool name used in log messages.

        Resources are created lazily and reused most recently released first.
        Callers blocked on a full pool are served in arrival order. The
        factory is never called while the pool lock is held.
    '''

    class Waiter(object):

        def __init__(self):
            self.event = Event()
            self.grant = None

    def __init__(self,
                 factory: Union[ResourceFactory, Callable[[], Any]],
                 max_size: int=1,
                 acquire_timeout: Optional[float]=None,
                 validate_on_release: Optional[bool]=None,
                 idle_target: int=0,
                 strict: bool=True,
                 name: str='pool'):
        super().__init__()

        if not isinstance(factory, ResourceFactory):
            factory = CallableResourceFactory(factory)
        if max_size < 1:
            raise ValueError('Pool max size must be positive')
        if acquire_timeout is not None and acquire_timeout < 0:
            raise ValueError('Pool acquire timeout must be non-negative')
        if idle_target < 0:
            raise ValueError('Pool idle target must be non-negative')
        if validate_on_release is None:
            validate_on_release = factory.supports_validate()

        self._factory = factory
        self._max_size = max_size
        self._acquire_timeout = acquire_timeout
        self._validate_on_release = validate_on_release
        self._idle_target = idle_target
        self._strict = strict
        self._name = name

        self._lock = Lock()
        self._available = []
        self._checked_out = dict()
        self._returning = 0
        self._creating = 0
        self._waiters = deque()
        self._handle_ids = itertools.count(1)
        self._closed = False

        self._total_created = 0
        self._total_destroyed = 0
        self._acquisitions = 0
        self._releases = 0
        self._waits = 0
        self._timeouts = 0
        self._creation_failures = 0
        self._discarded = 0
        self._invalid_releases = 0
        self._total_wait_time = 0.0
        self._max_wait_time = 0.0

        logging.debug('Pool [{}] max size: {}'.format(name, max_size))
        logging.debug('Pool [{}] acquire timeout: {}'.format(name, 'none' if acquire_timeout is None else '{}s'.format(acquire_timeout)))
        logging.debug('Pool [{}] validate on release: {}'.format(name, validate_on_release))

    def name(self) -> str:
        return self._name

    def factory(self) -> ResourceFactory:
        return self._factory

    def max_size(self) -> int:
        return self._max_size

    def acquire_timeout(self) -> Optional[float]:
        return self._acquire_timeout

    def idle_target(self) -> int:
        return self._idle_target

    def is_strict(self) -> bool:
        return self._strict

    def validates_on_release(self) -> bool:
        return self._validate_on_release

    def is_closed(self) -> bool:
        with self._lock:
            return self._closed

    def available_count(self) -> int:
        with self._lock:
            return len(self._available)

    def checked_out_count(self) -> int:
        with self._lock:
            return len(self._checked_out) + self._returning

    def waiting_count(self) -> int:
        with self._lock:
            return len(self._waiters)

    def total_created(self) -> int:
        with self._lock:
            return self._total_created

    def acquire(self, timeout: Optional[float]=None) -> Handle:
        '''
            Borrow a resource from the pool.

            timeout - seconds to wait for a full pool, None uses the pool's
                      acquire timeout and 0 fails immediately.

            Raises PoolExhaustedError if nothing became available in time and
            CreationFailedError if a new resource could not be created.
        '''
        if timeout is None:
            timeout = self._acquire_timeout
        if timeout is not None and timeout < 0:
            raise ValueError('Acquire timeout must be non-negative')

        with self._lock:
            self._check_open()
            if self._available and not self._waiters:
                return self._checkout(self._available.pop())
            if not self._waiters and self._live() < self._max_size:
                self._creating += 1
                waiter = None
            elif timeout == 0:
                self._timeouts += 1
                raise PoolExhaustedError('Pool [{}] exhausted'.format(self._name))
            else:
                waiter = Pool.Waiter()
                self._waiters.append(waiter)

        if waiter is None:
            return self._create()

        grant = self._wait(waiter, timeout)
        if grant is _CREATE:
            return self._create()
        return grant

    def try_acquire(self) -> Optional[Handle]:
        '''
            Try to acquire a resource without blocking.
            If the pool is exhausted, return None.
        '''
        try:
            return self.acquire(timeout=0)
        except PoolExhaustedError:
            return None

    def release(self, handle: Handle):
        '''
            Return a checked out resource to the pool.

            The resource is reset and, if enabled, validated before anyone
            else can acquire it. Resources failing validation are destroyed
            and their slot is freed. Errors raised by reset or validate
            propagate after the resource has been discarded.
        '''
        error = None
        with self._lock:
            if not self._is_checked_out(handle):
                self._invalid_releases += 1
                error = self._release_error(handle)
            else:
                del self._checked_out[handle.handle_id()]
                self._returning += 1
                resource = handle._detach()

        if error is not None:
            if self._strict:
                raise error
            logging.error('Pool [{}] ignoring release: {}'.format(self._name, str(error)))
            return

        valid = False
        try:
            self._check_resource(resource)
            valid = True
        except ValidationFailedError as e:
            logging.warning('Pool [{}] discarding resource: {}'.format(self._name, str(e)))
        finally:
            self._return(resource, valid)

    def shrink_idle(self, target: Optional[int]=None) -> int:
        '''
            Destroy idle resources, least recently used first, until at most
            target remain available. Returns the number of resources evicted.
        '''
        if target is None:
            target = self._idle_target
        if target < 0:
            raise ValueError('Idle target must be non-negative')

        with self._lock:
            evict_count = max(0, len(self._available) - target)
            evicted = self._available[:evict_count]
            del self._available[:evict_count]
            self._total_destroyed += len(evicted)

        for resource in evicted:
            self._factory.destroy_nothrow(resource)
        if evicted:
            logging.debug('Pool [{}] evicted {} idle resources'.format(self._name, len(evicted)))
        return len(evicted)

    def close(self):
        '''
            Destroy idle resources and fail blocked and future acquires.
            Resources still checked out are destroyed when released.
        '''
        with self._lock:
            if self._closed:
                return
            self._closed = True
            evicted = self._available
            self._available = []
            self._total_destroyed += len(evicted)
            while self._waiters:
                waiter = self._waiters.popleft()
                waiter.grant = _CLOSED
                waiter.event.set()

        for resource in evicted:
            self._factory.destroy_nothrow(resource)
        logging.debug('Pool [{}] closed'.format(self._name))

    def stats(self) -> PoolStats:
        with self._lock:
            return PoolStats(
                max_size=self._max_size,
                available=len(self._available),
                checked_out=len(self._checked_out) + self._returning,
                creating=self._creating,
                waiting=len(self._waiters),
                total_created=self._total_created,
                total_destroyed=self._total_destroyed,
                acquisitions=self._acquisitions,
                releases=self._releases,
                waits=self._waits,
                timeouts=self._timeouts,
                creation_failures=self._creation_failures,
                discarded=self._discarded,
                invalid_releases=self._invalid_releases,
                total_wait_time=self._total_wait_time,
                max_wait_time=self._max_wait_time)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _live(self) -> int:
        return len(self._available) + len(self._checked_out) + self._returning + self._creating

    def _check_open(self):
        if self._closed:
            raise PoolClosedError('Pool [{}] is closed'.format(self._name))

    def _checkout(self, resource: Any) -> Handle:
        handle = Handle(self, next(self._handle_ids), resource)
        self._checked_out[handle.handle_id()] = handle
        self._acquisitions += 1
        return handle

    def _is_checked_out(self, handle) -> bool:
        if not isinstance(handle, Handle) or handle.pool() is not self:
            return False
        return self._checked_out.get(handle.handle_id()) is handle

    def _release_error(self, handle) -> DoubleReleaseError:
        if isinstance(handle, Handle) and handle.pool() is self and handle.is_released():
            return DoubleReleaseError('Handle [{}] already released'.format(handle.handle_id()), DoubleReleaseError.DOUBLE_RELEASE)
        return DoubleReleaseError('Unknown handle [{}]'.format(handle), DoubleReleaseError.UNKNOWN_HANDLE)

    def _create(self) -> Handle:
        # A slot is already reserved in self._creating.
        try:
            resource = self._factory.create()
        except BaseException as e:
            with self._lock:
                self._creating -= 1
                self._creation_failures += 1
                self._grant_slot()
            if isinstance(e, Exception) and not isinstance(e, CreationFailedError):
                logging.error('Pool [{}] failed to create resource: {}'.format(self._name, str(e)))
                raise CreationFailedError('Failed to create resource: {}'.format(str(e)), e) from e
            raise

        with self._lock:
            self._creating -= 1
            self._total_created += 1
            if self._closed:
                self._total_destroyed += 1
                handle = None
            else:
                handle = self._checkout(resource)
            total_created = self._total_created

        if handle is None:
            self._factory.destroy_nothrow(resource)
            raise PoolClosedError('Pool [{}] is closed'.format(self._name))
        logging.debug('Pool [{}] created resource ({} total)'.format(self._name, total_created))
        return handle

    def _wait(self, waiter: 'Pool.Waiter', timeout: Optional[float]):
        start_t = time.monotonic()
        try:
            waiter.event.wait(timeout)
        except BaseException:
            self._cancel_wait(waiter)
            raise

        with self._lock:
            wait_t = time.monotonic() - start_t
            self._waits += 1
            self._total_wait_time += wait_t
            self._max_wait_time = max(self._max_wait_time, wait_t)
            # A grant that raced the timeout is still honoured.
            grant = waiter.grant
            if grant is None:
                self._waiters.remove(waiter)
                self._timeouts += 1

        if grant is None:
            logging.debug('Pool [{}] acquire timed out after {:.3f}s'.format(self._name, wait_t))
            raise PoolExhaustedError('Timed out acquiring resource from pool [{}]'.format(self._name))
        elif grant is _CLOSED:
            raise PoolClosedError('Pool [{}] is closed'.format(self._name))
        return grant

    def _cancel_wait(self, waiter: 'Pool.Waiter'):
        evicted = None
        with self._lock:
            grant = waiter.grant
            if grant is None:
                self._waiters.remove(waiter)
            elif grant is _CREATE:
                self._creating -= 1
                self._grant_slot()
            elif isinstance(grant, Handle):
                del self._checked_out[grant.handle_id()]
                resource = grant._detach()
                if not self._put_back(resource):
                    self._total_destroyed += 1
                    evicted = resource
        if evicted is not None:
            self._factory.destroy_nothrow(evicted)
        logging.debug('Pool [{}] acquire cancelled'.format(self._name))

    def _check_resource(self, resource: Any):
        self._factory.reset(resource)
        if self._validate_on_release and not self._factory.validate(resource):
            raise ValidationFailedError('Resource failed validation')

    def _return(self, resource: Any, valid: bool):
        with self._lock:
            self._returning -= 1
            self._releases += 1
            kept = valid and self._put_back(resource)
            if not kept:
                self._total_destroyed += 1
                if not valid:
                    self._discarded += 1
                self._grant_slot()

        if not kept:
            self._factory.destroy_nothrow(resource)

    def _put_back(self, resource: Any) -> bool:
        # Caller holds the lock. Returns False if the pool is closed.
        if self._closed:
            return False
        if self._waiters:
            waiter = self._waiters.popleft()
            waiter.grant = self._checkout(resource)
            waiter.event.set()
        else:
            self._available.append(resource)
        return True

    def _grant_slot(self):
        # Caller holds the lock. Hands a freed slot to the longest waiting acquire.
        if self._closed or not self._waiters or self._live() >= self._max_size:
            return
        waiter = self._waiters.popleft()
        self._creating += 1
        waiter.grant = _CREATE
        waiter.event.set()
