"""Logging utilities for sozu-acme.

`main` calls `pre_arg_parse_setup` first thing: until the command line
is known, only the most severe records reach the terminal, and an
exception hook reports anything that escapes. `post_arg_parse_setup`
then applies ``-v``, ``--quiet`` and ``--debug``.

Components log through `logging.getLogger(__name__)` by default and
accept a logger of their own, which is how tests capture their output.

"""
import functools
import logging
import sys
import traceback
from types import TracebackType
from typing import IO
from typing import List
from typing import Optional
from typing import Type

from sozu_acme import errors
from sozu_acme._internal import configuration
from sozu_acme._internal import constants

# Logging format
CLI_FMT = "%(message)s"
DEBUG_FMT = "%(asctime)s:%(levelname)s:%(name)s:%(message)s"

ANSI_SGR_RED = "\033[31m"
ANSI_SGR_RESET = "\033[0m"

logger = logging.getLogger(__name__)


def pre_arg_parse_setup() -> None:
    """Setup logging before command line arguments are parsed.

    Terminal logging is setup using
    `sozu_acme._internal.constants.QUIET_LOGGING_LEVEL` so sozu-acme is
    as quiet as possible until the requested verbosity is known.

    """
    stream_handler = ColoredStreamHandler()
    stream_handler.setFormatter(logging.Formatter(CLI_FMT))
    stream_handler.setLevel(constants.QUIET_LOGGING_LEVEL)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # send all records to handlers
    root_logger.addHandler(stream_handler)

    sys.excepthook = functools.partial(
        post_arg_parse_except_hook,
        debug='--debug' in sys.argv,
        quiet='--quiet' in sys.argv or '-q' in sys.argv)


def post_arg_parse_setup(config: configuration.NamespaceConfig) -> None:
    """Setup logging after command line arguments are parsed.

    This function assumes `pre_arg_parse_setup` was called earlier and
    the root logging configuration has not been modified.

    :param config: Configuration object

    """
    root_logger = logging.getLogger()
    stderr_handler = None
    for handler in root_logger.handlers:
        if isinstance(handler, ColoredStreamHandler):
            stderr_handler = handler
    msg = 'Previously configured logging handlers have been removed!'
    assert stderr_handler is not None, msg

    if config.quiet:
        level = constants.QUIET_LOGGING_LEVEL
    else:
        level = max(constants.DEFAULT_LOGGING_LEVEL - config.verbose_count * 10,
                    logging.DEBUG)
    stderr_handler.setLevel(level)
    if level <= logging.DEBUG:
        stderr_handler.setFormatter(logging.Formatter(DEBUG_FMT))
    logger.debug('Root logging level set at %d', level)

    sys.excepthook = functools.partial(
        post_arg_parse_except_hook, debug=config.debug, quiet=config.quiet)


class ColoredStreamHandler(logging.StreamHandler):
    """Stream handler that paints severe records red on a terminal.

    Output to anything but a tty is left uncolored.

    :ivar bool colored: the stream is a tty
    :ivar int red_level: lowest level printed in red, `logging.WARNING`
        by default

    """
    def __init__(self, stream: Optional[IO] = None) -> None:
        super().__init__(stream)
        self.colored = (sys.stderr.isatty() if stream is None else
                        stream.isatty())
        self.red_level = logging.WARNING

    def format(self, record: logging.LogRecord) -> str:
        out = super().format(record)
        if self.colored and record.levelno >= self.red_level:
            return ''.join((ANSI_SGR_RED, out, ANSI_SGR_RESET))
        return out


def _describe(exc_type: Type[BaseException], exc_value: BaseException) -> List[str]:
    """Lines telling the user what went wrong, without a traceback.

    Errors raised on purpose carry a readable message. Anything else
    is reported as unexpected, with its type.

    """
    if issubclass(exc_type, errors.Error):
        return [str(exc_value)]
    summary = ''.join(traceback.format_exception_only(exc_type, exc_value))
    return ['An unexpected error occurred:', summary.rstrip('\n')]


def post_arg_parse_except_hook(exc_type: Type[BaseException], exc_value: BaseException,
                               trace: TracebackType, debug: bool, quiet: bool) -> None:
    """Report an uncaught exception and exit with status 1.

    The traceback reaches the terminal only with ``--debug`` or for
    exceptions that are not `Exception` subclasses. Otherwise it is
    logged at debug level and a short description is shown instead.

    :param type exc_type: type of the raised exception
    :param BaseException exc_value: raised exception
    :param traceback trace: traceback of where the exception was raised
    :param bool debug: show the traceback
    :param bool quiet: skip the hint about more verbose output

    """
    exc_info = (exc_type, exc_value, trace)
    if debug or not issubclass(exc_type, Exception):
        if exc_type is KeyboardInterrupt:
            logger.error('Exiting due to user request.')
            sys.exit(1)
        logger.error('Exiting abnormally:', exc_info=exc_info)
    else:
        logger.debug('Exiting abnormally:', exc_info=exc_info)
        # error level, so the terminal handler shows it in red
        for line in _describe(exc_type, exc_value):
            logger.error(line)
    if not quiet:
        logger.error('Re-run sozu-acme with -v or --debug for more details.')
    sys.exit(1)
