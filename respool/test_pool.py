import queue
from threading import Event, Lock, Thread
import time
import unittest
from unittest import mock

from . import pool as pool_module
from .error import CreationFailedError, DoubleReleaseError, PoolClosedError, PoolExhaustedError
from .pool import Pool
from .resource import CallableResourceFactory
from .test_util import Session, SessionFactory, wait_for

class TestPool(unittest.TestCase):

    def setUp(self):
        self.factory = lambda: object()

    def tearDown(self):
        pass

    def test_acquire(self):
        pool = Pool(self.factory, 3)
        obj1 = pool.acquire(timeout=0.001).resource()
        obj2 = pool.acquire(timeout=0.001).resource()
        obj3 = pool.acquire(timeout=0.001).resource()

        self.assertIsNotNone(obj1)
        self.assertIsNotNone(obj2)
        self.assertIsNotNone(obj3)
        self.assertTrue(obj1 != obj2 and obj1 != obj3 and obj2 != obj3, 'Pool objects not unique')
        with self.assertRaises(PoolExhaustedError):
            pool.acquire(timeout=0.001)

    def test_try_acquire(self):
        pool = Pool(self.factory, 3)
        h1 = pool.try_acquire()
        h2 = pool.try_acquire()
        h3 = pool.try_acquire()

        self.assertIsNotNone(h1)
        self.assertIsNotNone(h2)
        self.assertIsNotNone(h3)
        self.assertEqual(len({id(h.resource()) for h in (h1, h2, h3)}), 3, 'Pool objects not unique')
        self.assertIsNone(pool.try_acquire())

    def test_release(self):
        pool = Pool(self.factory, 3)
        pool.try_acquire()
        pool.try_acquire()
        h3 = pool.try_acquire()
        obj3 = h3.resource()

        self.assertIsNone(pool.try_acquire())
        pool.release(h3)
        h4 = pool.try_acquire()
        self.assertIsNotNone(h4)
        self.assertIs(h4.resource(), obj3)

    def test_lazy_creation(self):
        factory = SessionFactory()
        pool = Pool(factory, 3)
        self.assertEqual(pool.total_created(), 0)
        h1 = pool.acquire()
        self.assertEqual(len(factory.created), 1)
        pool.release(h1)
        h2 = pool.acquire()
        self.assertEqual(len(factory.created), 1)
        self.assertIs(h2.resource(), factory.created[0])

    def test_most_recently_released_first(self):
        pool = Pool(SessionFactory(), 3)
        h1 = pool.acquire()
        h2 = pool.acquire()
        s1 = h1.resource()
        s2 = h2.resource()
        pool.release(h1)
        pool.release(h2)

        self.assertIs(pool.acquire().resource(), s2)
        self.assertIs(pool.acquire().resource(), s1)

    def test_invalid_arguments(self):
        with self.assertRaises(ValueError):
            Pool(self.factory, 0)
        with self.assertRaises(ValueError):
            Pool(self.factory, 1, acquire_timeout=-1)
        with self.assertRaises(ValueError):
            Pool(self.factory, 1, idle_target=-1)
        pool = Pool(self.factory, 1)
        with self.assertRaises(ValueError):
            pool.acquire(timeout=-0.5)
        with self.assertRaises(ValueError):
            pool.shrink_idle(-1)

    def test_callable_factory(self):
        pool = Pool(self.factory, 1)
        self.assertIsInstance(pool.factory(), CallableResourceFactory)
        self.assertFalse(pool.validates_on_release())
        self.assertTrue(Pool(SessionFactory(), 1).validates_on_release())
        self.assertFalse(Pool(SessionFactory(), 1, validate_on_release=False).validates_on_release())

class TestPoolRelease(unittest.TestCase):

    def test_double_release(self):
        pool = Pool(SessionFactory(), 2)
        h1 = pool.acquire()
        pool.acquire()
        pool.release(h1)
        before = pool.stats()

        with self.assertRaises(DoubleReleaseError) as cm:
            pool.release(h1)
        self.assertEqual(cm.exception.error_code(), DoubleReleaseError.DOUBLE_RELEASE)

        after = pool.stats()
        self.assertEqual(after.available, before.available)
        self.assertEqual(after.checked_out, before.checked_out)
        self.assertEqual(after.releases, before.releases)
        self.assertEqual(after.invalid_releases, before.invalid_releases + 1)

    def test_unknown_handle(self):
        pool = Pool(SessionFactory(), 1)
        other = Pool(SessionFactory(), 1)
        foreign = other.acquire()

        with self.assertRaises(DoubleReleaseError) as cm:
            pool.release(foreign)
        self.assertEqual(cm.exception.error_code(), DoubleReleaseError.UNKNOWN_HANDLE)
        with self.assertRaises(DoubleReleaseError) as cm:
            pool.release(object())
        self.assertEqual(cm.exception.error_code(), DoubleReleaseError.UNKNOWN_HANDLE)

        # The foreign handle is still checked out of its own pool.
        self.assertEqual(other.checked_out_count(), 1)
        other.release(foreign)
        self.assertEqual(other.available_count(), 1)

    def test_lenient_release(self):
        pool = Pool(SessionFactory(), 1, strict=False)
        h1 = pool.acquire()
        pool.release(h1)

        with self.assertLogs(level='ERROR') as cm:
            pool.release(h1)
        self.assertIn('already released', cm.output[0])
        self.assertEqual(pool.available_count(), 1)
        self.assertEqual(pool.checked_out_count(), 0)

    def test_access_after_release(self):
        pool = Pool(SessionFactory(), 1)
        h1 = pool.acquire()
        self.assertFalse(h1.is_released())
        h1.release()
        self.assertTrue(h1.is_released())
        with self.assertRaises(DoubleReleaseError):
            h1.resource()

    def test_handle_context_manager(self):
        pool = Pool(SessionFactory(), 1)
        with pool.acquire() as session:
            self.assertIsInstance(session, Session)
            self.assertEqual(pool.checked_out_count(), 1)
        self.assertEqual(pool.checked_out_count(), 0)
        self.assertEqual(pool.available_count(), 1)

    def test_reset_round_trip(self):
        factory = SessionFactory()
        pool = Pool(factory, 1)
        h1 = pool.acquire()
        h1.resource().data['user'] = 'testuser'
        h1.resource().data['cart'] = [1, 2, 3]
        pool.release(h1)

        h2 = pool.acquire()
        self.assertIs(h2.resource(), factory.created[0])
        self.assertEqual(h2.resource().state(), Session(0).state())

    def test_validation_failure_discards(self):
        factory = SessionFactory()
        pool = Pool(factory, 2)
        h1 = pool.acquire()
        s1 = h1.resource()
        s1.healthy = False
        pool.release(h1)

        self.assertEqual(pool.available_count(), 0)
        self.assertEqual(factory.destroyed, [s1])

        h2 = pool.acquire()
        self.assertIsNot(h2.resource(), s1)
        self.assertEqual(len(factory.created), 2)
        self.assertEqual(pool.total_created(), 2)
        stats = pool.stats()
        self.assertEqual(stats.discarded, 1)
        self.assertEqual(stats.total_destroyed, 1)

    def test_validation_disabled(self):
        factory = SessionFactory()
        pool = Pool(factory, 1, validate_on_release=False)
        h1 = pool.acquire()
        h1.resource().healthy = False
        pool.release(h1)
        self.assertEqual(pool.available_count(), 1)
        self.assertEqual(factory.destroyed, [])

    def test_reset_error_discards_and_propagates(self):
        def bad_reset(resource):
            raise ValueError('Cannot reset')
        destroyed = []
        pool = Pool(CallableResourceFactory(lambda: object(), reset=bad_reset, destroy=destroyed.append), 1)
        h1 = pool.acquire()
        obj = h1.resource()

        with self.assertRaises(ValueError):
            pool.release(h1)
        self.assertEqual(destroyed, [obj])
        self.assertEqual(pool.available_count(), 0)
        self.assertEqual(pool.checked_out_count(), 0)
        self.assertIsNotNone(pool.acquire(timeout=0))

class TestPoolCreation(unittest.TestCase):

    def test_creation_failure(self):
        factory = SessionFactory(fail_creates=1)
        pool = Pool(factory, 1)

        with self.assertRaises(CreationFailedError) as cm:
            pool.acquire()
        self.assertEqual(cm.exception.error_code(), CreationFailedError.CREATION_FAILED)
        self.assertIsInstance(cm.exception.cause(), RuntimeError)
        self.assertIs(cm.exception.__cause__, cm.exception.cause())

        # The failed construction does not hold on to the only slot.
        self.assertEqual(pool.stats().creating, 0)
        h1 = pool.acquire(timeout=0)
        self.assertIs(h1.resource(), factory.created[0])
        self.assertEqual(pool.stats().creation_failures, 1)

    def test_creation_failed_passthrough(self):
        error = CreationFailedError('Backend unavailable')
        def create():
            raise error
        pool = Pool(create, 1)
        with self.assertRaises(CreationFailedError) as cm:
            pool.acquire()
        self.assertIs(cm.exception, error)

    def test_creation_happens_outside_lock(self):
        created = Event()
        proceed = Event()
        def slow_create():
            created.set()
            proceed.wait(2)
            return object()
        pool = Pool(slow_create, 2)
        t = Thread(target=pool.acquire)
        t.start()
        self.assertTrue(created.wait(2))
        # Bookkeeping stays reachable while the factory runs.
        self.assertEqual(pool.stats().creating, 1)
        proceed.set()
        t.join(2)
        self.assertEqual(pool.checked_out_count(), 1)

class TestPoolBlocking(unittest.TestCase):

    def test_max_size_one_blocks(self):
        pool = Pool(SessionFactory(), 1)
        h1 = pool.acquire()
        acquired = queue.Queue()
        t = Thread(target=lambda: acquired.put(pool.acquire()))
        t.start()

        self.assertTrue(wait_for(lambda: pool.waiting_count() == 1))
        time.sleep(0.05)
        self.assertTrue(acquired.empty())
        pool.release(h1)
        h2 = acquired.get(timeout=2)
        t.join(2)
        self.assertIs(h2.resource(), pool.factory().created[0])

    def test_zero_default_timeout(self):
        pool = Pool(SessionFactory(), 1, acquire_timeout=0)
        pool.acquire()
        start_t = time.monotonic()
        with self.assertRaises(PoolExhaustedError) as cm:
            pool.acquire()
        self.assertLess(time.monotonic() - start_t, 0.5)
        self.assertEqual(cm.exception.error_code(), PoolExhaustedError.POOL_EXHAUSTED)
        self.assertEqual(pool.waiting_count(), 0)

    def test_timeout_deregisters_waiter(self):
        pool = Pool(SessionFactory(), 1)
        h1 = pool.acquire()
        with self.assertRaises(PoolExhaustedError):
            pool.acquire(timeout=0.05)
        self.assertEqual(pool.waiting_count(), 0)

        pool.release(h1)
        self.assertEqual(pool.available_count(), 1)
        stats = pool.stats()
        self.assertEqual(stats.timeouts, 1)
        self.assertEqual(stats.waits, 1)
        self.assertGreater(stats.max_wait_time, 0)

    def test_cancelled_wait_does_not_leak(self):
        class InterruptedEvent(object):
            def __init__(self):
                self._event = Event()
            def set(self):
                self._event.set()
            def wait(self, timeout=None):
                raise KeyboardInterrupt()

        pool = Pool(SessionFactory(), 1)
        h1 = pool.acquire()
        with mock.patch.object(pool_module, 'Event', InterruptedEvent):
            with self.assertRaises(KeyboardInterrupt):
                pool.acquire()
        self.assertEqual(pool.waiting_count(), 0)

        pool.release(h1)
        self.assertEqual(pool.available_count(), 1)
        self.assertIsNotNone(pool.acquire(timeout=0))

    def test_three_acquires_two_slots(self):
        factory = SessionFactory()
        pool = Pool(factory, 2)
        acquired = queue.Queue()
        threads = [Thread(target=lambda: acquired.put(pool.acquire(timeout=None))) for _ in range(3)]
        for t in threads:
            t.start()

        first = acquired.get(timeout=2)
        second = acquired.get(timeout=2)
        self.assertTrue(wait_for(lambda: pool.waiting_count() == 1))
        self.assertTrue(acquired.empty())

        released = first.resource()
        released.data['user'] = 'testuser'
        pool.release(first)
        third = acquired.get(timeout=2)
        for t in threads:
            t.join(2)

        self.assertIs(third.resource(), released)
        self.assertEqual(third.resource().data, {})
        self.assertIsNot(second.resource(), released)
        self.assertEqual(len(factory.created), 2)
        self.assertEqual(pool.total_created(), 2)

    def test_discard_frees_slot_for_waiter(self):
        factory = SessionFactory()
        pool = Pool(factory, 1)
        h1 = pool.acquire()
        acquired = queue.Queue()
        t = Thread(target=lambda: acquired.put(pool.acquire()))
        t.start()
        self.assertTrue(wait_for(lambda: pool.waiting_count() == 1))

        h1.resource().healthy = False
        pool.release(h1)
        h2 = acquired.get(timeout=2)
        t.join(2)
        self.assertIs(h2.resource(), factory.created[1])
        self.assertEqual(pool.total_created(), 2)

    def test_fifo_fairness(self):
        pool = Pool(SessionFactory(), 1)
        h0 = pool.acquire()
        order = []
        order_lock = Lock()

        def borrower(i):
            handle = pool.acquire()
            with order_lock:
                order.append(i)
            pool.release(handle)

        threads = []
        for i in range(5):
            t = Thread(target=borrower, args=(i,))
            t.start()
            threads.append(t)
            self.assertTrue(wait_for(lambda: pool.waiting_count() == i + 1))

        pool.release(h0)
        for t in threads:
            t.join(2)
        self.assertEqual(order, [0, 1, 2, 3, 4])

    def test_capacity_and_ownership_under_load(self):
        max_size = 3
        pool = Pool(SessionFactory(), max_size)
        in_use = set()
        in_use_lock = Lock()
        errors = []

        def worker():
            for _ in range(50):
                with pool.acquire() as session:
                    with in_use_lock:
                        if id(session) in in_use:
                            errors.append('Session {} borrowed twice'.format(session.session_id))
                        in_use.add(id(session))
                    stats = pool.stats()
                    if stats.available + stats.checked_out + stats.creating > max_size:
                        errors.append('Pool over capacity: {}'.format(stats))
                    session.data['worker'] = True
                    time.sleep(0.0005)
                    with in_use_lock:
                        in_use.discard(id(session))

        threads = [Thread(target=worker) for _ in range(10)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(30)

        self.assertEqual(errors, [])
        stats = pool.stats()
        self.assertLessEqual(stats.total_created, max_size)
        self.assertEqual(stats.acquisitions, 500)
        self.assertEqual(stats.releases, 500)
        self.assertEqual(stats.checked_out, 0)

class TestPoolMaintenance(unittest.TestCase):

    def test_shrink_idle(self):
        factory = SessionFactory()
        pool = Pool(factory, 4)
        handles = [pool.acquire() for _ in range(4)]
        for h in handles:
            pool.release(h)

        self.assertEqual(pool.shrink_idle(1), 3)
        self.assertEqual(pool.available_count(), 1)
        self.assertEqual(factory.destroyed, factory.created[:3])
        self.assertIs(pool.acquire().resource(), factory.created[3])
        self.assertEqual(pool.shrink_idle(0), 0)

    def test_shrink_idle_default_target(self):
        pool = Pool(SessionFactory(), 4, idle_target=2)
        handles = [pool.acquire() for _ in range(4)]
        for h in handles:
            pool.release(h)
        self.assertEqual(pool.shrink_idle(), 2)
        self.assertEqual(pool.available_count(), 2)

    def test_close(self):
        factory = SessionFactory()
        pool = Pool(factory, 2)
        h1 = pool.acquire()
        h2 = pool.acquire()
        pool.release(h2)

        errors = queue.Queue()
        def blocked():
            try:
                pool.acquire()
                pool.acquire()
            except PoolClosedError as e:
                errors.put(e)
        t = Thread(target=blocked)
        t.start()
        self.assertTrue(wait_for(lambda: pool.waiting_count() == 1))

        pool.close()
        self.assertIsInstance(errors.get(timeout=2), PoolClosedError)
        t.join(2)
        self.assertTrue(pool.is_closed())
        with self.assertRaises(PoolClosedError):
            pool.acquire()

        # Resources returned after close are destroyed instead of pooled.
        pool.release(h1)
        self.assertEqual(pool.available_count(), 0)
        self.assertEqual(factory.destroyed, [factory.created[0]])
        pool.close()

    def test_context_manager_closes(self):
        factory = SessionFactory()
        with Pool(factory, 1) as pool:
            pool.release(pool.acquire())
        self.assertTrue(pool.is_closed())
        self.assertEqual(factory.destroyed, factory.created)
