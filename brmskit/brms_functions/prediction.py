"""
Prediction helpers for brms models.

`predict()`, `fitted()` and `pp_mixture()` return numpy arrays in the layout
brms uses for its summaries. The ``posterior_*`` functions and `log_lik()`
return typed result objects that contain both an ArviZ `InferenceData` view
and the underlying R result.
"""

from typing import Literal, cast, overload

import numpy as np
import pandas as pd

from brmskit.helpers.rcall import call_r

from ..helpers.conversion import (
    _brmsfit_get_data,
    _brmsfit_get_predict_generic,
    _brmsfit_get_response_names,
    _constant_data,
    draws_to_idata,
    kwargs_r,
    py_to_r,
    r_array_to_numpy,
)
from ..types.brms_results import (
    FitResult,
    IDLogLikelihood,
    IDPosterior,
    IDPosteriorPredictive,
    IDPredictions,
    IDResult,
)


def _summary_array(
    function: str,
    model: FitResult,
    newdata: pd.DataFrame | None,
    summary: bool,
    kwargs: dict,
) -> np.ndarray:
    r_kwargs = kwargs_r({"newdata": newdata, "summary": summary, **kwargs})
    return r_array_to_numpy(call_r(function, model.r, **r_kwargs))


def predict(
    model: FitResult,
    newdata: pd.DataFrame | None = None,
    summary: bool = True,
    **kwargs,
) -> np.ndarray:
    """
    Predicted values of the response (including residual noise).

    Wrapper around R ``predict.brmsfit()``.

    Parameters
    ----------
    model : FitResult
        Fitted model
    newdata : pd.DataFrame, optional
        New data; the model data when omitted
    summary : bool, default True
        Summarise the draws. If False, all draws are returned.
    **kwargs
        Forwarded to brms, e.g. ``ndraws``, ``re_formula``,
        ``allow_new_levels``, ``incl_autocor``, ``negative_rt``

    Returns
    -------
    np.ndarray
        With ``summary=True``:

        - ``(nobs, 4)`` (Estimate, Est.Error, Q2.5, Q97.5) for univariate models
        - ``(nobs, ncat)`` category probabilities for categorical and ordinal models
        - ``(nobs, 4, nresp)`` for multivariate models

        With ``summary=False`` the draws, ``(ndraws, nobs[, nresp])``.

    Raises
    ------
    BrmsError
        When brms cannot predict, e.g. new locations in a CAR model.

    Examples
    --------
    >>> predict(fit1).shape
    (236, 4)
    >>> predict(fit_cat, newdata=nd).shape
    (4, 4)
    """
    return _summary_array("stats::predict", model, newdata, summary, kwargs)


def fitted(
    model: FitResult,
    newdata: pd.DataFrame | None = None,
    summary: bool = True,
    **kwargs,
) -> np.ndarray:
    """
    Expected values of the response (without residual noise).

    Same conventions as `predict()`, except that categorical and ordinal
    models give ``(nobs, 4, ncat)``: one summary per category probability.
    ``scale="linear"`` returns values of the linear predictor.
    """
    return _summary_array("stats::fitted", model, newdata, summary, kwargs)


def pp_mixture(
    model: FitResult,
    newdata: pd.DataFrame | None = None,
    summary: bool = True,
    **kwargs,
) -> np.ndarray:
    """
    Posterior probabilities of mixture component memberships.

    Returns an array shaped ``(nobs, 4, nmix)`` with ``summary=True``.

    Examples
    --------
    >>> fit = brm(bf("y ~ x"), data=dat, family=mixture(gaussian(), gaussian(), gaussian()))
    >>> pp_mixture(fit).shape
    (100, 4, 3)
    """
    return _summary_array("brms::pp_mixture", model, newdata, summary, kwargs)


def _draws_result(
    model: FitResult,
    function: str,
    newdata: pd.DataFrame | None,
    insample_group: str,
    var_suffix: str,
    kwargs: dict,
    outsample_group: str = "predictions",
) -> IDResult:
    import arviz as az

    model_r = model.r
    resp_names = _brmsfit_get_response_names(model_r)
    r_kwargs = kwargs_r(kwargs)
    if newdata is not None:
        r_kwargs["newdata"] = py_to_r(newdata)

    draws, r = _brmsfit_get_predict_generic(
        model_r, function=function, resp_names=resp_names, **r_kwargs
    )
    group = insample_group if newdata is None else outsample_group
    # in-sample draws are labelled like the training data
    id_source = newdata if newdata is not None else _brmsfit_get_data(model_r)
    idata = draws_to_idata(draws, group, newdata=id_source, var_suffix=var_suffix)

    if newdata is not None:
        constant = _constant_data(newdata, resp_names)
        if constant:
            obs_id = idata[group]["obs_id"].to_numpy()
            constant_idata = az.from_dict(
                predictions_constant_data=constant,
                coords={"obs_id": obs_id},
                dims={k: ["obs_id"] for k in constant},
            )
            idata.extend(constant_idata)

    return IDResult(idata=idata, r=r)


@overload
def posterior_predict(
    model: FitResult, newdata: Literal[None] = None, **kwargs
) -> IDResult[IDPosteriorPredictive]: ...


@overload
def posterior_predict(
    model: FitResult, newdata: pd.DataFrame, **kwargs
) -> IDResult[IDPredictions]: ...


def posterior_predict(
    model: FitResult,
    newdata: pd.DataFrame | None = None,
    **kwargs,
) -> IDResult:
    """
    Draw from the posterior predictive distribution (includes observation noise).

    Wrapper around R ``brms::posterior_predict()``.

    Parameters
    ----------
    model : FitResult
        Fitted model.
    newdata : pandas.DataFrame or None, default=None
        New data for predictions. If ``None``, uses the training data.
    **kwargs
        Forwarded to ``brms::posterior_predict()``.

    Returns
    -------
    IDResult
        ``idata.posterior_predictive`` (or ``idata.predictions`` for new data)
        with one variable per response.

    Examples
    --------
    ```python
    from brmskit import brms

    fit = brms.brm("y ~ x", data=df, chains=4)
    pp = brms.posterior_predict(fit)

    pp.idata.posterior_predictive
    ```
    """
    return _draws_result(
        model, "brms::posterior_predict", newdata, "posterior_predictive", "", kwargs
    )


@overload
def posterior_epred(
    model: FitResult, newdata: Literal[None] = None, **kwargs
) -> IDResult[IDPosterior]: ...


@overload
def posterior_epred(
    model: FitResult, newdata: pd.DataFrame, **kwargs
) -> IDResult[IDPredictions]: ...


def posterior_epred(
    model: FitResult,
    newdata: pd.DataFrame | None = None,
    **kwargs,
) -> IDResult:
    """
    Draws of the expected value of the response (noise-free).

    Wrapper around R ``brms::posterior_epred()``. Variables are named
    ``<response>_mean``.
    """
    return _draws_result(
        model, "brms::posterior_epred", newdata, "posterior", "_mean", kwargs
    )


@overload
def posterior_linpred(
    model: FitResult, newdata: Literal[None] = None, **kwargs
) -> IDResult[IDPosterior]: ...


@overload
def posterior_linpred(
    model: FitResult, newdata: pd.DataFrame, **kwargs
) -> IDResult[IDPredictions]: ...


def posterior_linpred(
    model: FitResult,
    newdata: pd.DataFrame | None = None,
    **kwargs,
) -> IDResult:
    """
    Draws of the linear predictor.

    Wrapper around R ``brms::posterior_linpred()``. Values are on the link
    scale unless ``transform=True``. Variables are named
    ``<response>_linpred``.
    """
    return _draws_result(
        model, "brms::posterior_linpred", newdata, "posterior", "_linpred", kwargs
    )


def log_lik(
    model: FitResult,
    newdata: pd.DataFrame | None = None,
    **kwargs,
) -> IDResult[IDLogLikelihood]:
    """
    Pointwise log-likelihood draws.

    Wrapper around R ``brms::log_lik()``. The result can be passed to
    ``arviz.loo``.

    Examples
    --------
    ```python
    import arviz as az

    ll = brms.log_lik(fit)
    az.loo(ll.idata)
    ```
    """
    result = _draws_result(
        model, "brms::log_lik", newdata, "log_likelihood", "", kwargs,
        outsample_group="log_likelihood",
    )
    return cast(IDResult[IDLogLikelihood], result)
