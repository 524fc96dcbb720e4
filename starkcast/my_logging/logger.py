import datetime
import json
import logging.config
import os
from logging import addLevelName

from starkcast.config import cfg
from starkcast.my_logging.log_context import get_log_context

# current time
timestamp = '{:%Y-%m-%d_%H-%M-%S}'.format(datetime.datetime.now())


# shutdown current logger (useful for debugging, ...)
def shutdown(handler_list=None):
    if handler_list is None:
        handler_list = []
    logging.shutdown(handler_list)


##########################
# add log level for DATA #
##########################
# LOG LEVELS
# existing:
# CRITICAL = 50
# ERROR = 40
# WARNING = 30
# INFO = 20
# DEBUG = 10
DATA = 5
addLevelName(DATA, "DATA")


def _json_default(value):
    # felts are logged as hex
    if isinstance(value, int):
        return hex(value)
    return str(value)


def data(key, value):
    """
    Log (key, value) to log-level DATA
    """
    if isinstance(value, int) and not isinstance(value, bool):
        value = _json_default(value)
    d = {'key': key, 'value': value, 'context': list(get_log_context())}
    return logging.log(DATA, json.dumps(d, default=_json_default))


def get_log_dir(parent_dir, label):
    """
    Convenience function for getting a log directory
    """
    d = os.path.join(parent_dir, label)

    # ensure log directory exists
    if not os.path.exists(d):
        os.makedirs(d)

    return d


def get_log_file(label='default', parent_dir=None, filename='log', include_timestamp=True):
    if parent_dir is None:
        parent_dir = os.path.realpath(cfg.log_dir)
    if label is None:
        log_dir = parent_dir
        os.makedirs(log_dir, exist_ok=True)
    else:
        log_dir = get_log_dir(parent_dir, label)

    if include_timestamp:
        filename += '_' + timestamp
    log_file = os.path.join(log_dir, filename)

    return log_file


def prepare_logger(log_file=None, silent=True):
    """
    Route all starkcast log records to the console and, if log_file is given, to info, debug and data files.

    The core never calls this itself, it is invoked by the command line interface (or by embedding applications).
    """
    # shutdown previous logger (if one was registered)
    shutdown()

    console_loglevel = 'DEBUG' if cfg.verbosity >= 2 else 'WARNING'

    if log_file is not None and not silent:
        print(f"Saving logs to {log_file}*...")

    # set default logging settings
    handlers = {
        'default': {
            'level': console_loglevel,
            'formatter': 'standard',
            'class': 'logging.StreamHandler',
        },
    }
    if log_file is not None:
        handlers.update({
            'fileinfo': {
                'level': 'INFO',
                'formatter': 'standard',
                'filename': log_file + '_info.log',
                'mode': 'w',
                'class': 'logging.FileHandler',
            },
            'filedebug': {
                'level': 'DEBUG',
                'formatter': 'standard',
                'filename': log_file + '_debug.log',
                'mode': 'w',
                'class': 'logging.FileHandler',
            },
            'filedata': {
                'level': 'DATA',
                'formatter': 'minimal',
                'filename': log_file + '_data.log',
                'mode': 'w',
                'class': 'logging.FileHandler',
                'filters': ['onlydata']
            }
        })

    default_logging = {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'standard': {
                'format': '%(asctime)s [%(levelname)s]: %(message)s',
                'datefmt': '%Y-%m-%d_%H-%M-%S'
            },
            'minimal': {
                'format': '%(message)s'
            },
        },
        'filters': {
            'onlydata': {
                '()': OnlyData
            }
        },
        'handlers': handlers,
        'loggers': {
            '': {
                'handlers': list(handlers.keys()),
                'level': 0
            }
        }
    }
    logging.config.dictConfig(default_logging)


class OnlyData(logging.Filter):

    def filter(self, record):
        return record.levelno == DATA
