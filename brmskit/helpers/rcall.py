"""
Calling R functions with condition capture.

`call_r` runs an R function inside ``withCallingHandlers`` so that R warnings
become Python warnings (`BrmsWarning`), R messages go to the brmskit logger
and R errors surface as `BrmsError` together with the R call stack.
"""

import warnings
from collections.abc import Callable
from typing import Any, cast

from brmskit.helpers.log import log_info
from brmskit.types.errors import BrmsError, BrmsWarning

_R_WRAPPER = """
function(.fun, .pos, .kw) {
    .warnings <- character(0)
    .messages <- character(0)
    .trace <- character(0)
    .label <- function(cl) {
        f <- cl[[1]]
        if (is.name(f)) return(as.character(f))
        if (is.function(f)) return("<function>")
        paste(deparse(f, nlines = 1L), collapse = "")
    }
    .value <- tryCatch(
        withCallingHandlers(
            do.call(.fun, c(.pos, .kw)),
            warning = function(w) {
                .warnings <<- c(.warnings, conditionMessage(w))
                invokeRestart("muffleWarning")
            },
            message = function(m) {
                .messages <<- c(.messages, conditionMessage(m))
                invokeRestart("muffleMessage")
            },
            error = function(e) {
                .trace <<- vapply(sys.calls(), .label, character(1))
            }
        ),
        error = function(e) {
            structure(list(message = conditionMessage(e)), class = "brmskit_error")
        }
    )
    list(
        value = .value,
        failed = inherits(.value, "brmskit_error"),
        warnings = .warnings,
        messages = .messages,
        trace = .trace
    )
}
"""

_wrapper = None


def _get_wrapper() -> Callable:
    global _wrapper
    if _wrapper is None:
        import rpy2.robjects as ro

        _wrapper = cast(Callable, ro.r(_R_WRAPPER))
    return _wrapper


def _function_name(fun: Any) -> str:
    if isinstance(fun, str):
        return fun.split("::")[-1]
    return getattr(fun, "__name__", "R")


def call_r(fun: str | Any, *args, **kwargs):
    """
    Call an R function and translate its conditions into Python.

    Parameters
    ----------
    fun : str or R function
        Function object or a name R can evaluate, e.g. ``"brms::brm"``.
    *args, **kwargs
        Arguments, already converted to R objects (see `py_to_r` / `kwargs_r`).
        Keyword names are passed to R unchanged.

    Returns
    -------
    Sexp
        Return value of the R function

    Raises
    ------
    BrmsError
        If R signals an error. The R call stack is attached as ``r_traceback``.

    Examples
    --------
    >>> from brmskit.helpers.rcall import call_r
    >>> from brmskit.helpers.conversion import py_to_r
    >>> call_r("base::sum", py_to_r([1, 2, 3]))
    """
    import rpy2.robjects as ro
    from rpy2.rinterface_lib.embedded import RRuntimeError

    name = _function_name(fun)
    r_fun = ro.r(fun) if isinstance(fun, str) else fun
    r_list = cast(Callable, ro.r("list"))

    try:
        res = _get_wrapper()(r_fun, r_list(*args), r_list(**kwargs))
    except RRuntimeError as e:
        # Failure outside the handlers, e.g. the wrapper itself could not run
        raise BrmsError(str(e).strip()) from e

    for msg in res.rx2("messages"):
        text = str(msg).rstrip("\n")
        if text:
            log_info(text, method_name=name)

    for msg in res.rx2("warnings"):
        warnings.warn(str(msg), BrmsWarning, stacklevel=2)

    value = res.rx2("value")
    if bool(res.rx2("failed")[0]):
        message = str(value.rx2("message")[0])
        trace = "\n".join(str(t) for t in res.rx2("trace")) or None
        raise BrmsError(f"{name}: {message}", r_traceback=trace)

    return value
