"""
Conversion between Python objects and R objects.

Also contains the brmsfit -> arviz.InferenceData conversion used by `brm()`
and the prediction functions.

Notes
-----
rpy2 is imported inside the functions. Importing this module does not start
an embedded R session.
"""

import re
from collections.abc import Callable, Mapping, Sequence
from typing import Any, cast

import arviz as az
import numpy as np
import pandas as pd
import xarray as xr

from brmskit.helpers.log import log_warning
from brmskit.types.brms_results import IDFit
from brmskit.types.formula_dsl import Family, FormulaConstruct

__all__ = [
    "py_to_r",
    "r_to_py",
    "kwargs_r",
    "r_array_to_numpy",
    "r_dimnames",
    "r_matrix_to_df",
    "r_array_to_dataarray",
    "r_df_to_pandas",
    "brmsfit_to_idata",
    "draws_to_idata",
]


def _coerce_stan_types(stan_code: str, stan_data: dict) -> dict:
    """
    Coerce Python numeric types to match the Stan data block.

    Reads the declared type of each data variable (``int`` or ``real``,
    old ``int Y[N]`` and new ``array[N] int Y`` syntax) and converts the
    values: size-1 arrays become scalars and ``int`` variables become
    ``int`` / ``int64`` arrays.

    Parameters
    ----------
    stan_code : str
        Complete Stan program containing a data block
    stan_data : dict
        Data keyed by Stan variable name

    Returns
    -------
    dict
        The same dict, coerced in place

    Examples
    --------
    >>> code = "data { int N; array[N] int y; vector[N] x; }"
    >>> _coerce_stan_types(code, {"N": np.array([3.0]), "y": [1.0, 0.0, 1.0]})
    {'N': 3, 'y': array([1, 0, 1])}
    """
    block = re.search(r"(?<=data {)[^}]*", stan_code)
    if block is None:
        return stan_data

    var_types: dict[str, str] = {}
    text = re.sub(r"//[^\n]*", "", block.group(0))
    for line in text.split(";"):
        line = re.sub(r"<[^>]+>", "", line)
        line = re.sub(r"\[[^\]]*\]", "", line)
        tokens = re.findall(r"\w+", line)
        if tokens and tokens[0] == "array" and len(tokens) >= 3:
            var_types[tokens[-1]] = tokens[1]
        elif len(tokens) >= 2:
            var_types[tokens[-1]] = tokens[0]

    for name, value in stan_data.items():
        if not isinstance(value, np.ndarray):
            value = np.asarray(value)
        if value.size == 1 and value.ndim <= 1:
            value = value.item()
        if var_types.get(name) == "int":
            if isinstance(value, np.ndarray):
                value = value.astype(np.int64)
            else:
                value = int(value)
        stan_data[name] = value

    return stan_data


# -----------------
# Python -> R
# -----------------


def _scalar_to_r(obj):
    import rpy2.robjects as ro

    if isinstance(obj, (bool, np.bool_)):
        return ro.BoolVector([bool(obj)])
    if isinstance(obj, (int, np.integer)):
        return ro.IntVector([int(obj)])
    if isinstance(obj, (float, np.floating)):
        return ro.FloatVector([float(obj)])
    if isinstance(obj, str):
        return ro.StrVector([obj])
    return None


def py_to_r(obj):
    """
    Convert Python objects into R objects.

    - None -> NULL
    - R objects -> unchanged
    - `Family` -> brms family object, `FormulaConstruct` -> brmsformula
    - pandas.DataFrame -> data.frame (categoricals become factors)
    - numpy arrays -> R vectors / matrices / arrays
    - dict -> named list, recursively
    - list/tuple of scalars of one kind -> atomic vector
    - other lists -> unnamed list, recursively
    - scalars -> length-1 vectors
    """
    import rpy2.robjects as ro
    from rpy2.rinterface_lib.sexp import Sexp
    from rpy2.robjects import numpy2ri, pandas2ri
    from rpy2.robjects.conversion import localconverter

    if obj is None:
        return ro.NULL

    if isinstance(obj, Sexp):
        return obj

    if isinstance(obj, Family):
        from brmskit.brms_functions.families import _family_to_r

        return _family_to_r(obj)

    if isinstance(obj, FormulaConstruct):
        from brmskit.brms_functions.formula import _execute_formula

        return _execute_formula(obj)

    if isinstance(obj, pd.DataFrame):
        with localconverter(ro.default_converter + pandas2ri.converter) as cv:
            return cv.py2rpy(obj)

    if isinstance(obj, pd.Series):
        return py_to_r(obj.to_numpy())

    if isinstance(obj, np.ndarray):
        if obj.dtype == object:
            return py_to_r(obj.tolist())
        with localconverter(ro.default_converter + numpy2ri.converter) as cv:
            return cv.py2rpy(obj)

    if isinstance(obj, Mapping):
        return ro.ListVector({str(k): py_to_r(v) for k, v in obj.items()})

    if isinstance(obj, (list, tuple)):
        if len(obj) == 0:
            return ro.ListVector({})
        kinds = {_scalar_kind(el) for el in obj}
        if len(kinds) == 1 and None not in kinds:
            kind = kinds.pop()
            if kind == "bool":
                return ro.BoolVector([bool(el) for el in obj])
            if kind == "int":
                return ro.IntVector([int(el) for el in obj])
            if kind == "float":
                return ro.FloatVector([float(el) for el in obj])
            return ro.StrVector([str(el) for el in obj])
        if kinds <= {"int", "float"}:
            return ro.FloatVector([float(el) for el in obj])
        r_list = cast(Callable, ro.r("list"))
        return r_list(*[py_to_r(el) for el in obj])

    converted = _scalar_to_r(obj)
    if converted is not None:
        return converted

    with localconverter(ro.default_converter) as cv:
        return cv.py2rpy(obj)


def _scalar_kind(obj) -> str | None:
    if isinstance(obj, (bool, np.bool_)):
        return "bool"
    if isinstance(obj, (int, np.integer)):
        return "int"
    if isinstance(obj, (float, np.floating)):
        return "float"
    if isinstance(obj, str):
        return "str"
    return None


def kwargs_r(kwargs: dict | None) -> dict:
    """
    Convert keyword arguments with `py_to_r()`.

    Keys are kept as given; None values are dropped so that R defaults apply.

    Examples
    --------
    >>> kwargs_r({"iter": 1000, "control": {"adapt_delta": 0.95}, "seed": None})
    {'iter': <IntVector>, 'control': <ListVector>}
    """
    if kwargs is None:
        return {}
    return {k: py_to_r(v) for k, v in kwargs.items() if v is not None}


# -----------------
# R -> Python
# -----------------


def r_to_py(obj):
    """
    Generic R -> Python converter.

    - NULL -> None
    - data.frame -> pandas.DataFrame
    - named list -> dict, unnamed list -> list (recursively)
    - matrices / arrays -> numpy arrays
    - atomic vector of length 1 -> Python scalar, longer -> list
    - anything else (formulas, calls, environments) -> its printed form
    """
    import rpy2.robjects as ro
    from rpy2.robjects import vectors

    if obj is ro.NULL or obj is None:
        return None

    if isinstance(obj, vectors.DataFrame):
        return r_df_to_pandas(obj)

    if isinstance(obj, vectors.ListVector):
        names = list(obj.names) if obj.names is not ro.NULL else []
        if names and all(n not in (None, "") for n in names):
            return {str(n): r_to_py(v) for n, v in zip(names, obj)}
        return [r_to_py(v) for v in obj]

    if isinstance(obj, vectors.Vector):
        if ro.r("dim")(obj) is not ro.NULL:
            return r_array_to_numpy(obj)
        values = [None if _is_na(v) else v for v in obj]
        if isinstance(obj, vectors.FactorVector):
            levels = list(obj.levels)
            values = [levels[int(v) - 1] if v is not None else None for v in obj]
        if len(values) == 1:
            return values[0]
        return values

    return str(obj)


def _is_na(value) -> bool:
    import rpy2.rinterface as ri

    return value is ri.NA_Logical or value is ri.NA_Integer or value is ri.NA_Character


def r_array_to_numpy(obj) -> np.ndarray:
    """
    Convert an R vector, matrix or array to numpy, keeping its ``dim``.

    R stores arrays column-major, so the flat values are reshaped with
    ``order="F"``.
    """
    import rpy2.robjects as ro

    dim = ro.r("dim")(obj)
    flat = np.asarray(ro.r("as.vector")(obj))
    if dim is ro.NULL:
        return flat
    shape = tuple(int(d) for d in dim)
    return flat.reshape(shape, order="F")


def r_dimnames(obj) -> list[list[str] | None]:
    """Return ``dimnames(obj)`` as a list with one entry (or None) per dimension."""
    import rpy2.robjects as ro

    dn = ro.r("dimnames")(obj)
    if dn is ro.NULL:
        return []
    return [None if d is ro.NULL else [str(x) for x in d] for d in dn]


def r_matrix_to_df(obj) -> pd.DataFrame:
    """Convert an R matrix (e.g. the result of ``fixef``) to a DataFrame."""
    arr = r_array_to_numpy(obj)
    if arr.ndim == 1:
        arr = arr.reshape(-1, 1)
    names = r_dimnames(obj)
    index = names[0] if len(names) > 0 else None
    columns = names[1] if len(names) > 1 else None
    return pd.DataFrame(arr, index=index, columns=columns)


def r_array_to_dataarray(obj, dims: Sequence[str]) -> xr.DataArray:
    """
    Convert an R array to a labelled ``xarray.DataArray``.

    ``dims`` names the dimensions; R dimnames become coordinates.
    """
    arr = r_array_to_numpy(obj)
    if arr.ndim != len(dims):
        raise ValueError(f"Expected {len(dims)} dimensions, got shape {arr.shape}")
    names = r_dimnames(obj)
    coords = {
        dim: labels
        for dim, labels in zip(dims, names)
        if labels is not None
    }
    return xr.DataArray(arr, dims=list(dims), coords=coords)


def r_df_to_pandas(obj) -> pd.DataFrame:
    """Convert an R data.frame to pandas (factors become categoricals)."""
    import rpy2.robjects as ro
    from rpy2.robjects import pandas2ri
    from rpy2.robjects.conversion import localconverter

    with localconverter(ro.default_converter + pandas2ri.converter):
        df = pandas2ri.rpy2py(obj)
    if not isinstance(df, pd.DataFrame):
        df = pd.DataFrame(df)
    return df


# -----------------------------
# brmsfit -> arviz.InferenceData
# -----------------------------


def _brmsfit_get_posterior(brmsfit_obj, **kwargs) -> dict[str, np.ndarray]:
    """Parameter draws keyed by variable name, each shaped (chains, draws)."""
    import rpy2.robjects as ro

    as_draws_df = cast(Callable, ro.r("posterior::as_draws_df"))
    df = r_df_to_pandas(as_draws_df(brmsfit_obj, **kwargs))

    chain_col = ".chain" if ".chain" in df.columns else "chain"
    draw_col = ".draw" if ".draw" in df.columns else "draw"

    df["draw_idx"] = df.groupby(chain_col)[draw_col].transform(
        lambda x: np.arange(len(x), dtype=int)
    )
    chains = np.sort(df[chain_col].unique())

    posterior: dict[str, np.ndarray] = {}
    for col in df.columns:
        if col in (chain_col, draw_col, ".iteration", "draw_idx"):
            continue
        posterior[col] = (
            df.pivot(index="draw_idx", columns=chain_col, values=col)
            .sort_index(axis=0)
            .reindex(columns=chains)
            .to_numpy()
            .T
        )
    return posterior


_R_RESPONSE_NAMES = """
function(fit) {
    bterms <- brms::brmsterms(fit$formula)
    if (inherits(bterms, "mvbrmsterms")) {
        names(bterms$terms)
    } else if (!is.null(bterms$respform)) {
        all.vars(bterms$respform)[1]
    } else {
        all.vars(fit$formula$formula)[1]
    }
}
"""


def _brmsfit_get_response_names(brmsfit_obj) -> list[str]:
    """Response names as brms uses them (``resp`` argument of post-fit functions)."""
    import rpy2.robjects as ro

    try:
        get_names = cast(Callable, ro.r(_R_RESPONSE_NAMES))
        return [str(x) for x in get_names(brmsfit_obj)]
    except Exception as e:
        log_warning(f"Could not get response names via brmsterms: {e}")
        return []


def _brmsfit_get_counts(brmsfit_obj) -> tuple[int, int]:
    """Return (nchains, draws per chain)."""
    import rpy2.robjects as ro

    total = int(cast(Callable, ro.r("posterior::ndraws"))(brmsfit_obj)[0])
    nchains = int(cast(Callable, ro.r("posterior::nchains"))(brmsfit_obj)[0])
    return nchains, total // nchains


def _reshape_to_arviz(values: np.ndarray, n_chains: int, n_draws: int) -> np.ndarray:
    values = np.asarray(values)
    expected = n_chains * n_draws
    if values.shape[0] != expected:
        raise ValueError(
            f"Expected {expected} rows (chains*draws), got {values.shape[0]}"
        )
    return values.reshape((n_chains, n_draws) + values.shape[1:])


def _is_unique(values) -> bool:
    vals = np.asarray(values)
    return np.unique(vals).size == vals.size


def _obs_id(df: pd.DataFrame) -> np.ndarray:
    for col in ("_obs_id_", "obs_id"):
        if col in df.columns:
            values = df[col].to_numpy()
            if _is_unique(values):
                return values
            log_warning(f"Column '{col}' is not unique; falling back to the index.")
            break
    index = df.index.to_numpy()
    if _is_unique(index):
        return index
    return np.arange(len(df), dtype=np.int64)


def _brmsfit_get_data(brmsfit_obj) -> pd.DataFrame:
    return r_df_to_pandas(brmsfit_obj.rx2("data"))


def _brmsfit_get_observed_data(
    brmsfit_obj, data: pd.DataFrame, resp_names: list[str]
) -> dict[str, np.ndarray]:
    observed: dict[str, np.ndarray] = {}
    for resp in resp_names:
        if resp in data.columns:
            observed[resp] = data[resp].to_numpy()
    if observed:
        return observed

    # brms may rename responses (e.g. "cbind(y1, y2)"), fall back to get_y
    try:
        import rpy2.robjects as ro

        y = r_array_to_numpy(cast(Callable, ro.r("brms::get_y"))(brmsfit_obj))
        if y.ndim == 1 and resp_names:
            observed[resp_names[0]] = y
        elif y.ndim == 2:
            for j, resp in enumerate(resp_names[: y.shape[1]]):
                observed[resp] = y[:, j]
    except Exception as e:
        log_warning(f"Could not extract observed data: {e}")
    return observed


def _brmsfit_get_predict_generic(
    brmsfit_obj,
    function: str = "brms::posterior_predict",
    resp_names: list[str] | None = None,
    **kwargs,
) -> tuple[dict[str, np.ndarray], Any]:
    """
    Run a brms draws function once per response.

    Returns draws keyed by response (each shaped (chains, draws, obs, ...))
    and the raw R result (a dict of R matrices for multivariate models).
    """
    from brmskit.helpers.rcall import call_r

    if resp_names is None:
        resp_names = _brmsfit_get_response_names(brmsfit_obj)
    nchains, ndraws = _brmsfit_get_counts(brmsfit_obj)
    ndraws_arg = kwargs.get("ndraws")

    def _one(resp: str | None):
        kw = dict(kwargs)
        if resp is not None:
            kw["resp"] = py_to_r(resp)
        r_mat = call_r(function, brmsfit_obj, **kw)
        arr = r_array_to_numpy(r_mat)
        if ndraws_arg is not None:
            # a subset of draws can't be mapped back to chains
            return arr.reshape((1,) + arr.shape), r_mat
        return _reshape_to_arviz(arr, nchains, ndraws), r_mat

    draws: dict[str, np.ndarray] = {}
    if len(resp_names) <= 1:
        name = resp_names[0] if resp_names else "y"
        draws[name], r = _one(resp_names[0] if resp_names else None)
        return draws, r

    r_all: dict[str, Any] = {}
    for resp in resp_names:
        draws[resp], r_all[resp] = _one(resp)
    return draws, r_all


def _constant_data(
    data: pd.DataFrame, resp_names: list[str]
) -> dict[str, np.ndarray]:
    out: dict[str, np.ndarray] = {}
    for col in data.columns:
        if col in resp_names or col in ("_obs_id_", "obs_id"):
            continue
        values = data[col]
        if isinstance(values.dtype, pd.CategoricalDtype):
            values = values.astype(str)
        out[col] = values.to_numpy()
    return out


def _brmsfit_has_draws(brmsfit_obj) -> bool:
    import rpy2.robjects as ro

    count = cast(
        Callable,
        ro.r("function(x) tryCatch(posterior::ndraws(x), error = function(e) 0L)"),
    )
    return int(count(brmsfit_obj)[0]) > 0


def brmsfit_to_idata(brmsfit_obj) -> IDFit:
    """
    Convert a brmsfit R object to arviz InferenceData.

    Groups: posterior, posterior_predictive, log_likelihood, observed_data
    and constant_data. Observation-level variables share the ``obs_id`` dim.
    Models fitted with ``empty=True`` only carry their data.
    """
    data = _brmsfit_get_data(brmsfit_obj)
    resp_names = _brmsfit_get_response_names(brmsfit_obj)
    obs_id = _obs_id(data)
    coords = {"obs_id": obs_id}

    observed = _brmsfit_get_observed_data(brmsfit_obj, data, resp_names)
    constant = _constant_data(data, list(observed) + resp_names)

    has_draws = _brmsfit_has_draws(brmsfit_obj)

    posterior: dict[str, np.ndarray] = {}
    post_pred: dict[str, np.ndarray] = {}
    log_lik: dict[str, np.ndarray] = {}
    if has_draws:
        posterior = _brmsfit_get_posterior(brmsfit_obj)
        try:
            post_pred, _ = _brmsfit_get_predict_generic(
                brmsfit_obj, "brms::posterior_predict", resp_names=resp_names
            )
            log_lik, _ = _brmsfit_get_predict_generic(
                brmsfit_obj, "brms::log_lik", resp_names=resp_names
            )
        except Exception as e:
            log_warning(f"Could not extract posterior predictive/log_lik: {e}")

    n_obs = len(obs_id)
    dims = {
        name: ["obs_id"]
        for group in (post_pred, log_lik)
        for name, arr in group.items()
        if arr.ndim >= 3 and arr.shape[2] == n_obs
    }
    dims.update({name: ["obs_id"] for name in observed})
    dims.update({name: ["obs_id"] for name in constant})

    idata = az.from_dict(
        posterior=posterior or None,
        posterior_predictive=post_pred or None,
        log_likelihood=log_lik or None,
        observed_data=observed or None,
        constant_data=constant or None,
        coords=coords,
        dims=dims,
    )
    return cast(IDFit, idata)


def draws_to_idata(
    draws: dict[str, np.ndarray],
    group: str,
    newdata: pd.DataFrame | None = None,
    var_suffix: str = "",
) -> az.InferenceData:
    """
    Wrap draws from `_brmsfit_get_predict_generic` into an InferenceData group.

    ``obs_id`` coordinates come from ``newdata`` (its ``obs_id`` column or
    index) when given, otherwise they are 0..N-1.
    """
    if not draws:
        return az.InferenceData()
    n_obs = next(iter(draws.values())).shape[2]
    if newdata is not None and len(newdata) == n_obs:
        obs_id = _obs_id(newdata)
    else:
        obs_id = np.arange(n_obs)

    named = {f"{k}{var_suffix}": v for k, v in draws.items()}
    dims = {k: ["obs_id"] for k in named}
    return az.from_dict(
        **{group: named},
        coords={"obs_id": obs_id},
        dims=dims,
    )
