"""
Model summaries and parameter extraction for fitted models.
"""

from collections.abc import Callable, Sequence
from typing import Dict, cast

import pandas as pd
import xarray as xr

from brmskit.helpers.rcall import call_r
from brmskit.helpers.robject_iter import iterate_robject_to_dataclass

from ..helpers.conversion import (
    kwargs_r,
    py_to_r,
    r_array_to_dataarray,
    r_df_to_pandas,
    r_matrix_to_df,
    r_to_py,
)
from ..types.brms_results import FitResult, SummaryResult


def summary(model: FitResult, **kwargs) -> SummaryResult:
    """
    Summary of a fitted model.

    Returns a `SummaryResult` with model information, parameter estimates and
    convergence diagnostics. Printing it gives a text summary similar to
    brms' own ``print(fit)``.

    [BRMS documentation and parameters](https://paulbuerkner.com/brms/reference/summary.brmsfit.html)

    Parameters
    ----------
    model : FitResult
        Fitted model from `brm()`
    **kwargs
        Additional arguments passed to ``brms::summary()``, such as
        ``probs=(0.05, 0.95)`` or ``robust=True``

    Returns
    -------
    SummaryResult
        Dataclass with the fields

        - **formula** (str): Model formula
        - **data_name** (str): Name of the data object used
        - **nobs** (int): Number of observations
        - **ngrps** (dict[str, int]): Number of levels per grouping factor
        - **prior** (pd.DataFrame): Priors used
        - **algorithm** / **sampler** (str)
        - **total_ndraws** (int), **chains**, **iter**, **warmup**, **thin**
        - **has_rhat** (bool): Whether Rhat diagnostics are reported
        - **fixed** (pd.DataFrame): Population-level effects
        - **spec_pars** (pd.DataFrame): Family specific parameters (e.g. sigma)
        - **cor_pars** (pd.DataFrame): Autocorrelation parameters
        - **random** (dict[str, pd.DataFrame]): Group-level effects by group

    Examples
    --------
    ```python
    from brmskit import brms

    fit = brms.brm("y ~ x + (1|g)", data=df)
    s = brms.summary(fit)
    print(s)
    s.fixed.loc["x", "Estimate"]
    s.random["g"]
    ```
    """
    import rpy2.robjects as ro

    summary_r = call_r("base::summary", model.r, **kwargs_r(kwargs))

    def _default_get_r(param: str) -> str:
        return f"function(x) x${param}"

    get_methods_r: Dict[str, Callable[[str], str]] = {
        "formula": lambda param: (
            "function(x) paste(utils::capture.output(print(x$formula)), collapse = '\\n')"
        ),
    }

    def get(param: str):
        fun = cast(Callable, ro.r(get_methods_r.get(param, _default_get_r)(param)))
        return r_to_py(fun(summary_r))

    out = iterate_robject_to_dataclass(
        names=summary_r.names, get=get, target_dataclass=SummaryResult
    )
    return cast(SummaryResult, out)


def fixef(
    model: FitResult,
    summary: bool = True,
    robust: bool = False,
    probs: Sequence[float] = (0.025, 0.975),
    pars: Sequence[str] | None = None,
    **kwargs,
) -> pd.DataFrame:
    """
    Population-level (fixed) effects.

    With ``summary=True`` one row per coefficient and the columns Estimate,
    Est.Error and one column per quantile in ``probs`` (Q2.5, Q97.5).
    With ``summary=False`` one row per posterior draw and one column per
    coefficient.

    [BRMS documentation](https://paulbuerkner.com/brms/reference/fixef.brmsfit.html)

    Examples
    --------
    >>> fixef(fit1).loc["Trt1", "Estimate"]
    >>> list(fixef(fit2).index)
    ['Intercept', 'Trt_c']
    """
    r_kwargs = kwargs_r(
        {
            "summary": summary,
            "robust": robust,
            "probs": list(probs),
            "pars": list(pars) if pars is not None else None,
            **kwargs,
        }
    )
    return r_matrix_to_df(call_r("brms::fixef", model.r, **r_kwargs))


def ranef(
    model: FitResult,
    summary: bool = True,
    robust: bool = False,
    probs: Sequence[float] = (0.025, 0.975),
    **kwargs,
) -> dict[str, xr.DataArray]:
    """
    Group-level (random) effects, one entry per grouping factor.

    Each value has the dims (level, stat, coef) when ``summary=True`` and
    (draw, level, coef) otherwise.

    Examples
    --------
    >>> sorted(ranef(fit1))
    ['obs', 'patient']
    >>> ranef(fit1)["patient"].sel(coef="Intercept", stat="Estimate")
    """
    r_kwargs = kwargs_r(
        {"summary": summary, "robust": robust, "probs": list(probs), **kwargs}
    )
    res = call_r("brms::ranef", model.r, **r_kwargs)
    dims = ("level", "stat", "coef") if summary else ("draw", "level", "coef")
    return {str(name): r_array_to_dataarray(arr, dims) for name, arr in zip(res.names, res)}


def coef(
    model: FitResult,
    summary: bool = True,
    robust: bool = False,
    probs: Sequence[float] = (0.025, 0.975),
    **kwargs,
) -> dict[str, xr.DataArray]:
    """
    Group-level coefficients: population-level plus group-level effects.

    Same layout as `ranef()`, e.g. ``coef(fit)["fosternest"].shape`` is
    (levels, 4, coefficients).
    """
    r_kwargs = kwargs_r(
        {"summary": summary, "robust": robust, "probs": list(probs), **kwargs}
    )
    res = call_r("stats::coef", model.r, **r_kwargs)
    dims = ("level", "stat", "coef") if summary else ("draw", "level", "coef")
    return {str(name): r_array_to_dataarray(arr, dims) for name, arr in zip(res.names, res)}


def VarCorr(model: FitResult, **kwargs) -> dict[str, dict[str, pd.DataFrame | xr.DataArray]]:
    """
    Standard deviations and correlations of group-level terms.

    Returns one dict per group (including ``"residual__"`` for residual
    correlations of multivariate models) with the entries ``"sd"``
    (DataFrame) and, where present, ``"cor"`` and ``"cov"`` (DataArrays with
    dims (coef, stat, coef2)).

    Examples
    --------
    >>> list(VarCorr(fit1))
    ['obs', 'patient']
    """
    import rpy2.robjects as ro

    res = call_r("brms::VarCorr", model.r, **kwargs_r(kwargs))
    out: dict[str, dict[str, pd.DataFrame | xr.DataArray]] = {}
    for group, entry in zip(res.names, res):
        parts: dict[str, pd.DataFrame | xr.DataArray] = {}
        for key, value in zip(entry.names, entry):
            if value is ro.NULL:
                continue
            if key == "sd":
                parts[key] = r_matrix_to_df(value)
            else:
                parts[str(key)] = r_array_to_dataarray(value, ("coef", "stat", "coef2"))
        out[str(group)] = parts
    return out


def nobs(model: FitResult) -> int:
    """Number of observations the model was fitted to."""
    return int(call_r("stats::nobs", model.r)[0])


def ndraws(model: FitResult) -> int:
    """Total number of post-warmup draws (all chains)."""
    return int(call_r("posterior::ndraws", model.r)[0])


nsamples = ndraws


def variables(model: FitResult) -> list[str]:
    """Names of all model variables (parameters), as used by posterior."""
    return [str(v) for v in call_r("posterior::variables", model.r)]


parnames = variables


def rhat(model: FitResult, **kwargs) -> pd.Series:
    """Rhat convergence diagnostic of every variable."""
    res = call_r("brms::rhat", model.r, **kwargs_r(kwargs))
    values = r_to_py(res)
    if not isinstance(values, list):
        values = [values]
    return pd.Series(values, index=[str(n) for n in res.names], name="rhat", dtype=float)


def posterior_summary(
    model: FitResult,
    variable: Sequence[str] | None = None,
    probs: Sequence[float] = (0.025, 0.975),
    robust: bool = False,
) -> pd.DataFrame:
    """Estimate, Est.Error and quantiles of every (or the selected) variable."""
    r_kwargs = kwargs_r(
        {
            "variable": list(variable) if variable is not None else None,
            "probs": list(probs),
            "robust": robust,
        }
    )
    return r_matrix_to_df(call_r("brms::posterior_summary", model.r, **r_kwargs))


def prior_summary(model: FitResult, all: bool = True) -> pd.DataFrame:
    """Priors used in the model, in the layout of `get_prior()`."""
    res = call_r("brms::prior_summary", model.r, all=py_to_r(all))
    return r_df_to_pandas(call_r("base::as.data.frame", res))


def formula_of(model: FitResult) -> str:
    """The model formula as brms prints it (including auxiliary formulas)."""
    import rpy2.robjects as ro

    fun = cast(
        Callable,
        ro.r("function(x) paste(utils::capture.output(print(stats::formula(x))), collapse = '\\n')"),
    )
    return str(fun(model.r)[0])


def bayes_R2(model: FitResult, summary: bool = True, **kwargs) -> pd.DataFrame:
    """
    Bayesian R-squared.

    With ``summary=True`` one row per response (``R2`` or ``R2<resp>``) and
    the columns Estimate, Est.Error, Q2.5, Q97.5; otherwise one row per draw.
    """
    res = call_r("brms::bayes_R2", model.r, summary=py_to_r(summary), **kwargs_r(kwargs))
    return r_matrix_to_df(res)


def as_draws_matrix(
    model: FitResult,
    variable: str | Sequence[str] | None = None,
    regex: bool | None = None,
) -> pd.DataFrame:
    """
    Posterior draws as a (draws x variables) DataFrame.

    Parameters
    ----------
    variable : str or list of str, optional
        Variables to select. A single string is treated as a regular
        expression unless ``regex=False``.

    Examples
    --------
    >>> ar = as_draws_matrix(fit_ar, "^ar").mean()
    """
    if regex is None:
        regex = isinstance(variable, str)
    r_kwargs = kwargs_r({"variable": variable, "regex": regex if variable is not None else None})
    res = call_r("posterior::as_draws_matrix", model.r, **r_kwargs)
    df = r_matrix_to_df(res)
    df.index.name = "draw"
    return df.reset_index(drop=True)
