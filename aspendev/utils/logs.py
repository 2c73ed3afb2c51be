import os
import sys
import logging

DEBUG_ENV = 'ASPENDEV_DEBUG'

_handler = None

def debug_requested(environ=None):
    if environ is None:
        environ = os.environ
    return environ.get(DEBUG_ENV, '').lower() not in ('', '0', 'false', 'no')

def setup_logging(verbose=False):
    global _handler

    logger = logging.getLogger('aspendev')
    # Rebind on every call so the handler follows the current sys.stderr
    if _handler is not None:
        logger.removeHandler(_handler)
    _handler = logging.StreamHandler(sys.stderr)
    _handler.setFormatter(logging.Formatter('%(message)s'))
    logger.addHandler(_handler)

    if verbose or debug_requested():
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    return logger
