import configparser
import logging
import os
from typing import Optional

from .error import ConfigError
from .maintenance import PoolMaintainer
from .pool import Pool
from .resource import ResourceFactory

DEFAULT_POOL_SECTION = 'pool'

def config_bool(config_val: str) -> bool:
    try:
        config_val = config_val.strip().lower()
        if config_val == 'true' or config_val == '1':
            return True
        elif config_val == 'false' or config_val == '0':
            return False
    except AttributeError:
        pass
    raise ConfigError('Invalid boolean value [{}]'.format(config_val))

def config_int(config, key: str, default: Optional[int]=None, min_val: Optional[int]=None) -> Optional[int]:
    val = config.get(key)
    if val is None or str(val).strip() == '':
        return default
    try:
        val = int(val)
    except ValueError:
        raise ConfigError('Invalid integer for [{}]: {}'.format(key, val))
    if min_val is not None and val < min_val:
        raise ConfigError('Value of [{}] must be at least {}'.format(key, min_val))
    return val

def config_seconds(config, key: str, default: Optional[float]=None) -> Optional[float]:
    val = config.get(key)
    if val is None or str(val).strip() == '':
        return default
    try:
        val = float(val)
    except ValueError:
        raise ConfigError('Invalid number of seconds for [{}]: {}'.format(key, val))
    if val < 0:
        raise ConfigError('Value of [{}] must be non-negative'.format(key))
    return val

def load_config(config_path: str) -> configparser.ConfigParser:
    if not os.path.exists(config_path):
        raise ConfigError('Config file [{}] not found!'.format(config_path), ConfigError.MISSING_CONFIG)

    config = configparser.ConfigParser()
    config.read(config_path)
    return config

def get_pool(factory: ResourceFactory, pool_config) -> Pool:
    '''
        Build a pool from a config section (any mapping with .get works).

        max-size - required, maximum number of live resources.
        acquire-timeout - default acquire timeout in seconds, empty to block indefinitely.
        validate-on-release - defaults to whether the factory can validate.
        idle-target - idle resources kept by shrink_idle(), 0 by default.
        strict-release - 1 raises on double release, 0 logs and ignores it.
        name - pool name used in log messages.
    '''
    max_size = config_int(pool_config, 'max-size', min_val=1)
    if max_size is None:
        raise ConfigError('Pool max-size is required', ConfigError.MISSING_CONFIG)

    validate_on_release = pool_config.get('validate-on-release')
    if validate_on_release is not None:
        validate_on_release = config_bool(validate_on_release)

    pool = Pool(factory,
                max_size=max_size,
                acquire_timeout=config_seconds(pool_config, 'acquire-timeout'),
                validate_on_release=validate_on_release,
                idle_target=config_int(pool_config, 'idle-target', 0, min_val=0),
                strict=config_bool(pool_config.get('strict-release', '1')),
                name=pool_config.get('name', 'pool'))
    logging.debug('Initialized pool [{}] from config'.format(pool.name()))
    return pool

def get_pool_maintainer(pool: Pool, pool_config) -> Optional[PoolMaintainer]:
    '''
        Maintenance daemon for the pool, or None if shrink-interval is 0 or unset.
    '''
    shrink_interval = config_seconds(pool_config, 'shrink-interval', 0)
    if shrink_interval == 0:
        return None
    return PoolMaintainer(pool, shrink_interval)
