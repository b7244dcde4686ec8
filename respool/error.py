class PoolError(Exception):

    '''
        Resource pool error codes.
    '''

    INTERNAL_ERROR = "INTERNAL_ERROR"

    def __init__(self, msg: str, error_code: str=INTERNAL_ERROR):
        super().__init__(msg)
        self._error_code = error_code

    def error_code(self) -> str:
        return self._error_code

    def to_dict(self) -> dict:
        return {'error-code': self.error_code(), 'message': str(self)}

class CreationFailedError(PoolError):

    '''
        Raised to the acquire caller when the resource factory fails.
    '''

    CREATION_FAILED = "CREATION_FAILED"

    def __init__(self, msg: str, cause: BaseException=None, error_code: str=CREATION_FAILED):
        super().__init__(msg, error_code)
        self._cause = cause

    def cause(self):
        return self._cause

class PoolExhaustedError(PoolError):

    POOL_EXHAUSTED = "POOL_EXHAUSTED"

    def __init__(self, msg: str, error_code: str=POOL_EXHAUSTED):
        super().__init__(msg, error_code)

class DoubleReleaseError(PoolError):

    '''
        Release of a handle that is not currently checked out of the pool.
    '''

    DOUBLE_RELEASE = "DOUBLE_RELEASE"
    UNKNOWN_HANDLE = "UNKNOWN_HANDLE"

    def __init__(self, msg: str, error_code: str=DOUBLE_RELEASE):
        super().__init__(msg, error_code)

class ValidationFailedError(PoolError):

    VALIDATION_FAILED = "VALIDATION_FAILED"

    def __init__(self, msg: str, error_code: str=VALIDATION_FAILED):
        super().__init__(msg, error_code)

class PoolClosedError(PoolError):

    POOL_CLOSED = "POOL_CLOSED"

    def __init__(self, msg: str, error_code: str=POOL_CLOSED):
        super().__init__(msg, error_code)

class ConfigError(PoolError):

    '''
        Configuration error codes.
    '''

    INVALID_CONFIG = "INVALID_CONFIG"
    MISSING_CONFIG = "MISSING_CONFIG"

    def __init__(self, msg: str, error_code: str=INVALID_CONFIG):
        super().__init__(msg, error_code)

class DaemonError(PoolError):

    def __init__(self, msg: str, error_code: str=PoolError.INTERNAL_ERROR):
        super().__init__(msg, error_code)

class NotImplementedError(PoolError):

    def __init__(self, msg: str='Method not implemented!', error_code: str=PoolError.INTERNAL_ERROR):
        super().__init__(msg, error_code)
