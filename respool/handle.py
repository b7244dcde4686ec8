from typing import Any

from .error import DoubleReleaseError

class Handle(object):

    '''
        Token for one checkout of a pooled resource.

        The resource is only reachable through resource() while the handle is
        checked out. Once released, any access raises DoubleReleaseError.
        Handles cannot be copied or pickled.
    '''

    def __init__(self, pool, handle_id: int, resource: Any):
        super().__init__()
        self._pool = pool
        self._handle_id = handle_id
        self._resource = resource
        self._released = False

    def handle_id(self) -> int:
        return self._handle_id

    def pool(self):
        return self._pool

    def is_released(self) -> bool:
        return self._released

    def resource(self) -> Any:
        if self._released:
            raise DoubleReleaseError('Handle [{}] already released'.format(self._handle_id))
        return self._resource

    def release(self):
        self._pool.release(self)

    def _detach(self) -> Any:
        # Caller holds the pool lock.
        resource = self._resource
        self._resource = None
        self._released = True
        return resource

    def __enter__(self):
        return self.resource()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._pool.release(self)

    def __copy__(self):
        raise TypeError('Pool handles cannot be copied')

    def __deepcopy__(self, memo):
        raise TypeError('Pool handles cannot be copied')

    def __reduce__(self):
        raise TypeError('Pool handles cannot be pickled')

    def __repr__(self):
        state = 'released' if self._released else 'checked-out'
        return 'Handle({}, {})'.format(self._handle_id, state)
