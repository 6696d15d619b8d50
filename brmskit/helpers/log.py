import inspect
import logging
import time
from typing import Optional


class Colors:
    """ANSI escape codes used by the brmskit log formatter."""

    RESET = "\033[0m"
    RED = "\033[91m"
    YELLOW = "\033[93m"
    BOLD = "\033[1m"


class BrmskitFormatter(logging.Formatter):
    """
    Custom formatter that formats log messages as [brmskit][method_name] msg.

    Warnings are printed in yellow, errors and critical messages in bold red
    with an explicit level label.
    """

    def format(self, record):
        method_name = getattr(record, "method_name", record.funcName)
        message = record.getMessage()

        if record.levelno >= logging.ERROR:
            prefix = f"{Colors.RED}{Colors.BOLD}[brmskit][{method_name}][{record.levelname}]"
            out = f"{prefix} {message}{Colors.RESET}"
        elif record.levelno >= logging.WARNING:
            out = f"{Colors.YELLOW}[brmskit][{method_name}] {message}{Colors.RESET}"
        else:
            out = f"[brmskit][{method_name}] {message}"

        if record.exc_info:
            out = f"{out}\n{self.formatException(record.exc_info)}"
        return out


_logger = None

_LEVEL_HELPERS = frozenset(
    {"log_info", "log_debug", "log_warning", "log_error", "log_critical"}
)


def get_logger() -> logging.Logger:
    """
    Get or create the brmskit logger instance.

    Returns a configured logger with a custom formatter that outputs
    messages in the format: [brmskit][method_name] msg here. The initial
    level comes from the ``log_level`` setting (see `brmskit.config`).

    Returns
    -------
    logging.Logger
        Configured brmskit logger instance

    Examples
    --------
    >>> from brmskit.helpers.log import get_logger
    >>> logger = get_logger()
    >>> logger.info("Starting process")  # Prints: [brmskit][<module>] Starting process
    """
    global _logger

    if _logger is None:
        from brmskit.config import get_settings

        _logger = logging.getLogger("brmskit")
        _logger.setLevel(get_settings().log_level)

        # Only add handler if none exists (avoid duplicate handlers)
        if not _logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(BrmskitFormatter())
            _logger.addHandler(handler)

        _logger.propagate = False

    return _logger


def _get_caller_name() -> str:
    """
    Get the name of the function that called one of the log helpers.

    Returns
    -------
    str
        Name of the calling function or "unknown" if not found
    """
    frame = inspect.currentframe()
    try:
        # this function -> log() -> [log_info/log_warning/...] -> caller
        caller = frame.f_back.f_back if frame is not None and frame.f_back else None
        if caller is not None and caller.f_code.co_name in _LEVEL_HELPERS:
            caller = caller.f_back
        if caller is not None:
            return caller.f_code.co_name
    finally:
        del frame
    return "unknown"


def log(msg: str, method_name: Optional[str] = None, level: int = logging.INFO):
    """
    Log a message with automatic method name detection.

    Parameters
    ----------
    msg : str
        The message to log
    method_name : str, optional
        The name of the method/function. If None, will auto-detect from call stack.
    level : int, optional
        Logging level (default: logging.INFO)

    Examples
    --------
    >>> from brmskit.helpers.log import log
    >>>
    >>> def my_function():
    ...     log("Starting process")  # Prints: [brmskit][my_function] Starting process
    """
    if method_name is None:
        method_name = _get_caller_name()

    logger = get_logger()
    logger.log(level, msg, extra={"method_name": method_name})


def log_info(msg: str, method_name: Optional[str] = None):
    """Log an info message."""
    log(msg, method_name=method_name, level=logging.INFO)


def log_debug(msg: str, method_name: Optional[str] = None):
    """Log a debug message."""
    log(msg, method_name=method_name, level=logging.DEBUG)


def log_warning(msg: str, method_name: Optional[str] = None):
    """
    Log a warning message.

    Parameters
    ----------
    msg : str
        The warning message to log
    method_name : str, optional
        The name of the method/function. If None, will auto-detect from call stack.

    Examples
    --------
    >>> from brmskit.helpers.log import log_warning
    >>>
    >>> def my_function():
    ...     log_warning("This might be an issue")  # Prints: [brmskit][my_function] This might be an issue
    """
    log(msg, method_name=method_name, level=logging.WARNING)


def log_error(msg: str, method_name: Optional[str] = None):
    """Log an error message."""
    log(msg, method_name=method_name, level=logging.ERROR)


def log_critical(msg: str, method_name: Optional[str] = None):
    """Log a critical message."""
    log(msg, method_name=method_name, level=logging.CRITICAL)


def set_log_level(level: int):
    """
    Set the logging level for brmskit logger.

    Parameters
    ----------
    level : int
        Logging level (e.g., logging.DEBUG, logging.INFO, logging.WARNING)

    Examples
    --------
    >>> import logging
    >>> from brmskit.helpers.log import set_log_level
    >>> set_log_level(logging.DEBUG)
    """
    logger = get_logger()
    logger.setLevel(level)


class LogTime:
    """
    Context manager that logs how long the wrapped block took.

    Examples
    --------
    >>> with LogTime("sampling"):
    ...     fit = brm("y ~ x", data=df)
    # [brmskit][sampling] took 12.34 seconds
    """

    def __init__(self, name: str = "process"):
        self.name = name
        self.start: float | None = None
        self.elapsed: float | None = None

    def __enter__(self):
        self.start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb):
        assert self.start is not None
        self.elapsed = time.perf_counter() - self.start
        log(f"took {self.elapsed:.2f} seconds", method_name=self.name)
        return False
