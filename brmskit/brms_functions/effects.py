"""
Conditional (marginal) effects of predictors.
"""

from collections.abc import Callable, Sequence
from typing import Any, cast

import pandas as pd

from brmskit.helpers.log import log_debug
from brmskit.helpers.rcall import call_r

from ..helpers.conversion import kwargs_r, py_to_r, r_df_to_pandas
from ..types.brms_results import ConditionalEffects, FitResult

# Older brms method names still found in scripts
_METHODS = {
    "fitted": "posterior_epred",
    "predict": "posterior_predict",
    "linear": "posterior_linpred",
}


def _to_conditional_effects(res, smooths: bool, surface: bool) -> ConditionalEffects:
    import rpy2.robjects as ro

    get_points = cast(Callable, ro.r("function(x) attr(x, 'points')"))

    effects: dict[str, pd.DataFrame] = {}
    points: dict[str, pd.DataFrame] = {}
    for name, value in zip(res.names, res):
        key = str(name)
        effects[key] = r_df_to_pandas(value)
        pts = get_points(value)
        if pts is not ro.NULL:
            points[key] = r_df_to_pandas(pts)
    log_debug(f"Converted {len(effects)} effects")
    return ConditionalEffects(
        effects, points=points, smooths=smooths, surface=surface, r=res
    )


def _re_formula_r(re_formula: str | None):
    if re_formula is None:
        return None
    return call_r("stats::as.formula", py_to_r(re_formula))


def conditional_effects(
    model: FitResult,
    effects: str | Sequence[str] | None = None,
    conditions: pd.DataFrame | None = None,
    method: str = "fitted",
    re_formula: str | None = None,
    surface: bool = False,
    resolution: int = 100,
    resp: str | None = None,
    categorical: bool = False,
    **kwargs: Any,
) -> ConditionalEffects:
    """
    Effects of predictors on the response, other predictors held constant.

    Wrapper around R ``brms::conditional_effects()``.

    Parameters
    ----------
    model : FitResult
        Fitted model
    effects : str or list of str, optional
        Effects to compute, e.g. ``"zAge"`` or ``"zBase:Trt"``. All main
        effects and two-way interactions by default.
    conditions : pd.DataFrame, optional
        One row per set of conditions for the remaining predictors
    method : str, default "fitted"
        "fitted" (expected values), "predict" (including residual noise) or
        "linear"; brms' own names such as "posterior_epred" also work
    re_formula : str, optional
        Group-level effects to include. By default none are included
        (brms' ``re_formula = NA``); ``"~ (1|patient)"`` includes some.
    surface : bool, default False
        Compute two-dimensional surfaces for interactions of numeric
        predictors
    resolution : int, default 100
        Number of grid points for numeric predictors
    resp : str, optional
        Response of a multivariate model
    categorical : bool, default False
        Show category probabilities of ordinal models
    **kwargs
        Further ``brms::conditional_effects()`` arguments

    Returns
    -------
    ConditionalEffects
        Mapping of effect name to a DataFrame with the grid and the
        ``estimate__``, ``se__``, ``lower__`` and ``upper__`` columns.

    Warns
    -----
    BrmsWarning
        Raised by brms, e.g. "Predictions are treated as continuous
        variables" for ordinal models.

    Examples
    --------
    ```python
    me = brms.conditional_effects(fit1, "zBase:Trt")
    me["zBase:Trt"].head()
    me.plot(points=True)
    ```
    """
    r_kwargs = kwargs_r(
        {
            "effects": list(effects) if isinstance(effects, (list, tuple)) else effects,
            "conditions": conditions,
            "method": _METHODS.get(method, method),
            "surface": surface,
            "resolution": resolution,
            "resp": resp,
            "categorical": categorical if categorical else None,
            **kwargs,
        }
    )
    re_r = _re_formula_r(re_formula)
    if re_r is not None:
        r_kwargs["re_formula"] = re_r

    res = call_r("brms::conditional_effects", model.r, **r_kwargs)
    return _to_conditional_effects(res, smooths=False, surface=surface)


marginal_effects = conditional_effects


def conditional_smooths(
    model: FitResult,
    smooths: str | Sequence[str] | None = None,
    resolution: int = 100,
    resp: str | None = None,
    **kwargs: Any,
) -> ConditionalEffects:
    """
    Estimated smooth terms (``s()``, ``t2()``, ``gp()``) of a model.

    Wrapper around R ``brms::conditional_smooths()``. Multivariate models
    give one entry per smooth and response.

    Examples
    --------
    >>> ms = conditional_smooths(fit_mv)
    >>> len(ms)
    2
    """
    r_kwargs = kwargs_r(
        {
            "smooths": list(smooths) if isinstance(smooths, (list, tuple)) else smooths,
            "resolution": resolution,
            "resp": resp,
            **kwargs,
        }
    )
    res = call_r("brms::conditional_smooths", model.r, **r_kwargs)
    return _to_conditional_effects(res, smooths=True, surface=True)


marginal_smooths = conditional_smooths
