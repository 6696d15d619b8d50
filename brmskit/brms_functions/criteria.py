"""
Information criteria: LOO, WAIC, K-fold cross-validation and model comparison.
"""

from collections.abc import Sequence
from itertools import combinations
from typing import Any

import numpy as np
import pandas as pd

from brmskit.helpers.log import LogTime, log, log_warning
from brmskit.helpers.rcall import call_r

from ..helpers.conversion import kwargs_r, r_array_to_numpy, r_matrix_to_df
from ..types.brms_results import FitResult, ICComparison, LooResult


def _loo_from_r(res, criterion: str, model_name: str = "") -> LooResult:
    import rpy2.robjects as ro

    estimates = r_matrix_to_df(res.rx2("estimates"))
    pointwise_r = res.rx2("pointwise")
    pointwise = (
        r_matrix_to_df(pointwise_r) if pointwise_r is not ro.NULL else pd.DataFrame()
    )

    pareto_k = None
    if criterion == "loo":
        diagnostics = res.rx2("diagnostics")
        if diagnostics is not ro.NULL and "pareto_k" in list(diagnostics.names):
            pareto_k = r_array_to_numpy(diagnostics.rx2("pareto_k"))
        elif "influence_pareto_k" in pointwise.columns:
            pareto_k = pointwise["influence_pareto_k"].to_numpy()

    return LooResult(
        criterion=criterion,
        estimates=estimates,
        pointwise=pointwise,
        pareto_k=pareto_k,
        model_name=model_name,
        r=res,
    )


def _model_names(n: int, model_names: Sequence[str] | None) -> list[str]:
    if model_names is None:
        return [f"model{i + 1}" for i in range(n)]
    names = [str(m) for m in model_names]
    if len(names) != n:
        raise ValueError(f"Expected {n} model names, got {len(names)}")
    if len(set(names)) != n:
        raise ValueError("Model names must be unique")
    return names


def _ic_diffs(results: Sequence[LooResult]) -> pd.DataFrame:
    """
    Pairwise differences of information criteria on the deviance scale.

    For each pair (i, j), ``i < j``, the difference ``ic_i - ic_j`` and its
    standard error ``sqrt(n * var(pointwise_i - pointwise_j))``.

    Columns are named after the criterion (``LOOIC``, ``WAIC``, ``KFOLDIC``)
    plus ``SE``; rows are labelled ``"<model i> - <model j>"``.
    """
    if len(results) < 2:
        raise ValueError("At least two models are needed for a comparison")

    column = str(results[0].estimates.index[2]).upper()
    rows: dict[str, list[float]] = {}
    for a, b in combinations(results, 2):
        pw_a, pw_b = a.ic_pointwise, b.ic_pointwise
        if pw_a.shape != pw_b.shape:
            raise ValueError(
                f"Models '{a.model_name}' and '{b.model_name}' were not fitted "
                "to the same number of observations"
            )
        diff = pw_a - pw_b
        n = diff.size
        se = float(np.sqrt(n * np.var(diff, ddof=1))) if n > 1 else float("nan")
        rows[f"{a.model_name} - {b.model_name}"] = [a.ic - b.ic, se]

    return pd.DataFrame.from_dict(rows, orient="index", columns=[column, "SE"])


def _criterion(
    function: str,
    criterion: str,
    models: Sequence[FitResult],
    model_names: Sequence[str] | None,
    r_kwargs: dict,
) -> LooResult | ICComparison:
    names = _model_names(len(models), model_names)
    results = []
    for name, model in zip(names, models):
        with LogTime(f"{criterion}:{name}"):
            res = call_r(function, model.r, **r_kwargs)
        results.append(_loo_from_r(res, criterion, name))

    if len(results) == 1:
        return results[0]
    return ICComparison(
        results={r.model_name: r for r in results}, ic_diffs=_ic_diffs(results)
    )


def loo(
    model: FitResult,
    *models: FitResult,
    reloo: bool = False,
    newdata: pd.DataFrame | None = None,
    model_names: Sequence[str] | None = None,
    **kwargs: Any,
) -> LooResult | ICComparison:
    """
    Approximate leave-one-out cross-validation (PSIS-LOO).

    Parameters
    ----------
    model, *models : FitResult
        One or more fitted models. Several models give an `ICComparison`.
    reloo : bool, default False
        Refit the model for observations with high Pareto k
    newdata : pd.DataFrame, optional
        Data to evaluate instead of the model data
    model_names : list of str, optional
        Labels used in the comparison (``model1``, ``model2``... by default)
    **kwargs
        Further ``brms::loo()`` arguments (``pointwise``, ``moment_match``...)

    Returns
    -------
    LooResult or ICComparison

    Examples
    --------
    >>> loo(fit1).ic
    >>> cmp = loo(fit1, fit2)
    >>> cmp.ic_diffs
    """
    if reloo:
        log("Refitting models for problematic observations (reloo)...")
    r_kwargs = kwargs_r({"reloo": reloo, "newdata": newdata, **kwargs})
    return _criterion("brms::loo", "loo", [model, *models], model_names, r_kwargs)


def waic(
    model: FitResult,
    *models: FitResult,
    nsamples: int | None = None,
    model_names: Sequence[str] | None = None,
    **kwargs: Any,
) -> LooResult | ICComparison:
    """
    Widely applicable information criterion.

    ``nsamples`` limits the number of posterior draws used.

    Examples
    --------
    >>> w = waic(fit1)
    >>> w.estimates.loc["waic", "Estimate"]
    >>> waic(fit_mv1, fit_mv2).ic_diffs.shape
    (1, 2)
    """
    r_kwargs = kwargs_r({"ndraws": nsamples, **kwargs})
    return _criterion("brms::waic", "waic", [model, *models], model_names, r_kwargs)


LOO = loo
WAIC = waic


def kfold(
    model: FitResult,
    K: int = 10,
    folds: str | Sequence[int] | None = None,
    group: str | None = None,
    model_name: str = "",
    **kwargs: Any,
) -> LooResult:
    """
    K-fold cross-validation; refits the model ``K`` times.

    Returns a `LooResult` with ``criterion="kfold"``; ``.kfoldic`` holds
    the estimate on the deviance scale.

    Examples
    --------
    >>> kfold(fit1, K=5, chains=1).kfoldic
    """
    r_kwargs = kwargs_r(
        {
            "K": K,
            "folds": list(folds) if isinstance(folds, (list, tuple)) else folds,
            "group": group,
            **kwargs,
        }
    )
    log(f"Running {K}-fold cross-validation...")
    with LogTime("kfold"):
        res = call_r("brms::kfold", model.r, **r_kwargs)
    return _loo_from_r(res, "kfold", model_name)


def reloo(
    loo_result: LooResult,
    model: FitResult,
    k_threshold: float = 0.7,
    **kwargs: Any,
) -> LooResult:
    """
    Refit the model once per observation whose Pareto k exceeds
    ``k_threshold`` and recompute LOO exactly for those observations.
    """
    if loo_result.criterion != "loo":
        raise ValueError("reloo() needs a LOO result")
    n_bad = 0
    if loo_result.pareto_k is not None:
        n_bad = int(np.sum(np.asarray(loo_result.pareto_k) > k_threshold))
    if n_bad == 0:
        log_warning(f"No observations with Pareto k > {k_threshold}; nothing to refit.")
    else:
        log(f"Refitting the model {n_bad} times...")
    r_kwargs = kwargs_r({"k_threshold": k_threshold, **kwargs})
    with LogTime("reloo"):
        res = call_r("brms::reloo", loo_result.r, model.r, **r_kwargs)
    return _loo_from_r(res, "loo", loo_result.model_name)


def loo_compare(*results: LooResult) -> pd.DataFrame:
    """
    Compare models by expected log predictive density (``loo::loo_compare``).

    Returns one row per model, best model first, with the columns
    ``elpd_diff``, ``se_diff`` and the estimates of each model.
    """
    import rpy2.robjects as ro

    if len(results) < 2:
        raise ValueError("loo_compare() needs at least two results")
    names = _model_names(
        len(results),
        [r.model_name for r in results] if all(r.model_name for r in results) else None,
    )
    x = ro.ListVector({name: r.r for name, r in zip(names, results)})
    return r_matrix_to_df(call_r("loo::loo_compare", x))
