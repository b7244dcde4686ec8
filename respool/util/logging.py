import logging

LOG_LEVELS = {
    'CRITICAL': logging.CRITICAL,
    'ERROR': logging.ERROR,
    'WARN': logging.WARN,
    'WARNING': logging.WARNING,
    'INFO': logging.INFO,
    'DEBUG': logging.DEBUG,
}

DEFAULT_LOG_FORMAT = '%(asctime)s - %(levelname)s - %(thread)d:%(funcName)s:%(filename)s:%(lineno)d - %(message)s'

def parse_log_level(log_level: str) -> int:
    try:
        return LOG_LEVELS[log_level.strip().upper()]
    except (AttributeError, KeyError):
        raise ValueError('Invalid log level [{}]'.format(log_level))

def config_logging(log_level: str='INFO', log_format: str=DEFAULT_LOG_FORMAT):
    # Thread ids matter here, most pool activity happens on worker threads.
    logging.basicConfig(format=log_format, level=parse_log_level(log_level))
