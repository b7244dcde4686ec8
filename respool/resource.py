import logging
from typing import Any, Callable, Optional

from .error import NotImplementedError

class ResourceFactory(object):

    '''
        Capability a pooled resource type must provide.

        create - construct a new resource. Errors propagate to the acquire caller.
        reset - clear per-borrower state so the resource looks unused.
        validate - optional health check run on release. Factories that do not
                   override it never have their resources validated.
        destroy - release whatever the resource holds once the pool evicts it.
    '''

    def __init__(self):
        super().__init__()

    def create(self) -> Any:
        raise NotImplementedError()

    def reset(self, resource: Any):
        raise NotImplementedError()

    def validate(self, resource: Any) -> bool:
        return True

    def supports_validate(self) -> bool:
        return type(self).validate is not ResourceFactory.validate

    def destroy(self, resource: Any):
        pass

    def destroy_nothrow(self, resource: Any):
        try:
            self.destroy(resource)
        except Exception as e:
            logging.error('Error destroying resource: {}'.format(str(e)))

class CallableResourceFactory(ResourceFactory):

    '''
        Resource factory built from plain callables.

        Only create is required. A missing reset leaves resources untouched
        on release, a missing validate disables validation.
    '''

    def __init__(self,
                 create: Callable[[], Any],
                 reset: Optional[Callable[[Any], None]]=None,
                 validate: Optional[Callable[[Any], bool]]=None,
                 destroy: Optional[Callable[[Any], None]]=None):
        super().__init__()
        self._create = create
        self._reset = reset
        self._validate = validate
        self._destroy = destroy

    def create(self) -> Any:
        return self._create()

    def reset(self, resource: Any):
        if self._reset is not None:
            self._reset(resource)

    def validate(self, resource: Any) -> bool:
        if self._validate is None:
            return True
        return bool(self._validate(resource))

    def supports_validate(self) -> bool:
        return self._validate is not None

    def destroy(self, resource: Any):
        if self._destroy is not None:
            self._destroy(resource)
