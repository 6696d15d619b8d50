"""
Lazily imported R packages.

R packages are attached on first use so that importing brmskit never starts
loading brms (which takes several seconds) until a model function is called.
"""

from typing import Any

from brmskit.helpers.log import log, log_debug
from brmskit.types.errors import BrmsNotInstalledError

_brms = None
_base = None
_posterior = None
_cmdstanr = None
_rstan = None
_optional: dict[str, Any] = {}

_INSTALL_HINT = (
    "brms R package not found. Install it using:\n\n"
    "  import brmskit\n"
    "  brmskit.install_brms()  # for latest version\n\n"
    "Or install a specific version:\n"
    "  brmskit.install_brms(brms_version='2.23.0')\n\n"
    "Or install manually in R:\n"
    "  install.packages('brms')\n"
)


def _importr(name: str):
    import rpy2.robjects.packages as rpackages

    return rpackages.importr(name)


def _get_brms():
    """
    Lazy import of the brms R package (plus base, posterior and the backends).

    Returns
    -------
    brms module
        Imported brms R package

    Raises
    ------
    BrmsNotInstalledError
        If brms (or rpy2 / R itself) is not available
    """
    global _brms, _base, _posterior, _cmdstanr, _rstan
    if _brms is None:
        log("Importing R libraries...")
        try:
            _base = _importr("base")
            _posterior = _importr("posterior")
            _brms = _importr("brms")
        except Exception as e:
            raise BrmsNotInstalledError(_INSTALL_HINT) from e

        try:
            _cmdstanr = _importr("cmdstanr")
        except Exception:
            log_debug("cmdstanr not available")
            _cmdstanr = None
        try:
            _rstan = _importr("rstan")
        except Exception:
            log_debug("rstan not available")
            _rstan = None
        log("R libraries imported!")
    return _brms


def _has_backend(backend: str) -> bool:
    _get_brms()
    if backend == "cmdstanr":
        return _cmdstanr is not None
    if backend == "rstan":
        return _rstan is not None
    return False


def _get_optional(name: str):
    """
    Import an R package that only some functions need (loo, bridgesampling...).

    Raises
    ------
    BrmsNotInstalledError
        If the package is not installed in R
    """
    if name not in _optional:
        try:
            _optional[name] = _importr(name)
        except Exception as e:
            raise BrmsNotInstalledError(
                f"R package '{name}' is required for this function. "
                f"Install it with brmskit.runtime.install_package('{name}')."
            ) from e
    return _optional[name]


def _invalidate_singletons():
    global _brms, _base, _posterior, _cmdstanr, _rstan
    _brms = None
    _base = None
    _posterior = None
    _cmdstanr = None
    _rstan = None
    _optional.clear()
