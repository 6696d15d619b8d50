"""
Error and condition types exposed by brmskit.

brms reports problems through R conditions. Errors raised by an R call are
turned into `BrmsError` in Python. R warnings signalled while a call runs are
re-emitted through the `warnings` module as `BrmsWarning`; R messages are
written to the brmskit logger.

See Also
--------
[`call_r()`][brmskit.helpers.rcall.call_r]
    Runs an R function and converts its conditions into these types.
"""


class BrmsError(RuntimeError):
    """
    Error raised when a call into R/brms fails.

    Parameters
    ----------
    message : str
        Human-readable error message (usually the R condition message).
    r_traceback : str or None, default=None
        Best-effort traceback text captured in R.
    """

    def __init__(self, message: str, r_traceback: str | None = None) -> None:
        super().__init__(message)
        self.r_traceback = r_traceback

    def __str__(self) -> str:
        """Return message plus the R traceback (if available)."""
        base = super().__str__()
        if self.r_traceback:
            return f"{base}\n\nR traceback:\n{self.r_traceback}\n\n"
        return base


class BrmsNotInstalledError(ImportError):
    """Raised when brms (or a required companion R package) cannot be loaded."""


class BrmsWarning(UserWarning):
    """An R warning signalled by brms while a call was running."""
