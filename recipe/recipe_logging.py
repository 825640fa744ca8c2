"""This provides logging functionality for Recipe.

It is modeled on the default `logging approach that comes with Python <https://docs.python.org/library/logging.html>`_.

Every module creates its own logger through ``create_module_logger``. All
of these are children of the ``RECIPE`` root logger, which only carries a
``NullHandler`` until ``log_to_stderr`` is called.

"""

import inspect
import logging
from functools import wraps
from logging import DEBUG, INFO

__all__ = [
    "DEBUG",
    "DEFAULT_LEVEL",
    "INFO",
    "LOGGER_NAME",
    "create_module_logger",
    "function_logger",
    "get_module_logger",
    "get_rootlogger",
    "log_to_stderr",
    "method_logger",
]
LOGGER_NAME = "RECIPE"
DEFAULT_LEVEL = DEBUG

DEFAULT_FORMAT = "[%(name)s %(levelname)s] %(message)s"

_module_loggers = {}


def create_module_logger(name: str | None = None):
    """Helper function for creating a module logger.

    Args:
        name (str): The name to be given to the logger. If the name is None, the name defaults to the name of the module.

    """
    if name is None:
        frm = inspect.stack()[1]
        mod = inspect.getmodule(frm[0])
        name = mod.__name__
    logger_name = f"{LOGGER_NAME}.{name}"

    logger = logging.getLogger(logger_name)
    _module_loggers[name] = logger
    return logger


def get_module_logger(name: str):
    """Helper function for getting the module logger.

    Args:
        name (str): The name of the module in which the method being decorated is located

    """
    try:
        logger = _module_loggers[name]
    except KeyError:
        logger = create_module_logger(name)

    return logger


def method_logger(name: str):
    """Decorator for adding logging to a method.

    Args:
        name (str): The name of the module in which the method being decorated is located

    """
    logger = get_module_logger(name)
    classname = name.split(".")[-1]

    def real_decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            # hack, because we get the instance object as first argument
            if len(args) > 0:
                class_name = args[0].__class__.__name__
            else:
                class_name = classname
            logger.debug(
                f"calling {class_name}.{func.__name__} with {args[1::]} and {kwargs}"
            )
            res = func(*args, **kwargs)
            return res

        return wrapper

    return real_decorator


def function_logger(name):
    """Decorator for adding logging to a Function.

    Args:
        name (str): The name of the module in which the function being decorated is located

    """
    logger = get_module_logger(name)

    def real_decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            logger.debug(f"calling {func.__name__} with {args} and {kwargs}")
            res = func(*args, **kwargs)
            return res

        return wrapper

    return real_decorator


def get_rootlogger():
    """Returns root logger."""
    return _rootlogger


def log_to_stderr(level: int | None = None, pass_root_logger_level: bool = False):
    """Turn on logging and add a handler which prints to stderr.

    Args:
        level: minimum level of the messages that will be logged
        pass_root_logger_level: bool, optional. Default False
            if True, all module loggers will be set to the same logging level as the root logger.
            Recommended to set this to True when running batches with multiple processes.

    Returns:
        the root logger

    """
    if not level:
        level = DEFAULT_LEVEL

    logger = get_rootlogger()

    # avoid creation of multiple stream handlers for logging to console
    for entry in logger.handlers:
        if (isinstance(entry, logging.StreamHandler)) and (
            entry.formatter._fmt == DEFAULT_FORMAT
        ):
            return logger

    formatter = logging.Formatter(DEFAULT_FORMAT)
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.propagate = False

    if pass_root_logger_level:
        for module_logger in _module_loggers.values():
            module_logger.setLevel(level)

    return logger


# Set up root logger
_rootlogger = logging.getLogger(LOGGER_NAME)
_rootlogger.addHandler(logging.NullHandler())
_rootlogger.setLevel(DEFAULT_LEVEL)
