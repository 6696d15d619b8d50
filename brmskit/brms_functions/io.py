"""
Example datasets and reading/writing models as R ``.rds`` files.
"""

from collections.abc import Callable
from pathlib import Path
from typing import Any, cast

import pandas as pd

from brmskit.helpers.log import log, log_debug
from brmskit.helpers.rcall import call_r

from ..helpers.conversion import (
    brmsfit_to_idata,
    kwargs_r,
    py_to_r,
    r_df_to_pandas,
    r_to_py,
)
from ..types.brms_results import FitResult

_R_GET_DATA = """
function(name, package) {
    env <- new.env()
    utils::data(list = name, package = package, envir = env)
    if (!exists(name, envir = env, inherits = FALSE)) {
        stop(sprintf("dataset '%s' not found in package '%s'", name, package))
    }
    get(name, envir = env)
}
"""


def get_data(name: str, package: str) -> pd.DataFrame | Any:
    """
    Load a dataset shipped with an R package.

    Data frames are returned as pandas DataFrames (factors become
    categoricals); other objects (e.g. spatial neighbour lists) are
    converted with the generic R -> Python conversion.

    Parameters
    ----------
    name : str
        Dataset name, e.g. ``"nhanes"``
    package : str
        R package that provides it, e.g. ``"mice"``

    Raises
    ------
    BrmsError
        If the package is not installed or has no such dataset

    Examples
    --------
    >>> nhanes = get_data("nhanes", "mice")
    >>> fremantle = get_data("fremantle", "ismev")
    """
    import rpy2.robjects as ro
    from rpy2.robjects import vectors

    log_debug(f"Loading dataset {package}::{name}")
    fun = cast(Callable, ro.r(_R_GET_DATA))
    obj = call_r(fun, py_to_r(name), py_to_r(package))
    if isinstance(obj, vectors.DataFrame):
        return r_df_to_pandas(obj)
    return r_to_py(obj)


def get_brms_data(name: str) -> pd.DataFrame:
    """
    Load one of the example datasets of brms.

    Parameters
    ----------
    name : str
        ``"epilepsy"``, ``"kidney"``, ``"inhaler"``, ``"BTdata"``...

    Examples
    --------
    ```python
    from brmskit import brms

    epilepsy = brms.get_brms_data("epilepsy")
    epilepsy.head()
    ```
    """
    return get_data(name, "brms")


def _rds_path(path: str | Path) -> str:
    path = Path(path)
    if path.suffix.lower() != ".rds":
        path = path.with_name(path.name + ".rds")
    return str(path)


def save_rds(obj: FitResult | Any, path: str | Path, **kwargs) -> str:
    """
    Save a fitted model (or any R object) with R's ``saveRDS()``.

    The ``.rds`` extension is added when missing. Returns the final path.

    Examples
    --------
    >>> save_rds(fit, "models/epilepsy")
    'models/epilepsy.rds'
    """
    r_obj = obj.r if isinstance(obj, FitResult) else py_to_r(obj)
    file = _rds_path(path)
    call_r("base::saveRDS", r_obj, file=py_to_r(file), **kwargs_r(kwargs))
    log(f"Saved {file}")
    return file


def read_rds_raw(path: str | Path):
    """Read an ``.rds`` file and return the R object unchanged."""
    file = str(path)
    if not Path(file).exists():
        raise FileNotFoundError(file)
    return call_r("base::readRDS", py_to_r(file))


def read_rds_fit(path: str | Path) -> FitResult:
    """
    Read a brmsfit saved with `save_rds()` (or ``saveRDS()`` in R).

    Raises
    ------
    TypeError
        If the file does not contain a brmsfit
    """
    import rpy2.robjects as ro

    r_obj = read_rds_raw(path)
    if "brmsfit" not in list(ro.r("class")(r_obj)):
        raise TypeError(f"{path} does not contain a brmsfit object")
    return FitResult(idata=brmsfit_to_idata(r_obj), r=r_obj)
