"""
Marginal likelihoods via bridge sampling, Bayes factors and posterior model
probabilities.

The marginal likelihoods come from the R package ``bridgesampling``; the
Bayes factor and the model probabilities are computed here from the log
marginal likelihoods. Models must be fitted with ``save_all_pars=True``.
"""

from collections.abc import Sequence

import numpy as np

from brmskit.helpers import singleton
from brmskit.helpers.log import LogTime, log_debug
from brmskit.helpers.rcall import call_r

from ..helpers.conversion import kwargs_r, r_to_py
from ..types.brms_results import BayesFactorResult, BridgeResult, FitResult


def bridge_sampler(model: FitResult, **kwargs) -> BridgeResult:
    """
    Estimate the log marginal likelihood of a model.

    Parameters
    ----------
    model : FitResult
        Model fitted with ``save_all_pars=True``
    **kwargs
        Passed to ``bridgesampling::bridge_sampler()`` (``method``,
        ``repetitions``, ``silent``...)

    Raises
    ------
    BrmsNotInstalledError
        If the bridgesampling R package is missing
    BrmsError
        If the model did not save all parameters
    """
    singleton._get_optional("bridgesampling")
    r_kwargs = kwargs_r({"silent": True, **kwargs})
    with LogTime("bridge_sampler"):
        res = call_r("bridgesampling::bridge_sampler", model.r, **r_kwargs)
    logml = r_to_py(res.rx2("logml"))
    niter = r_to_py(res.rx2("niter"))
    method = r_to_py(res.rx2("method"))
    return BridgeResult(
        logml=float(logml),
        niter=int(niter) if niter is not None else 0,
        method=str(method) if method is not None else "normal",
        r=res,
    )


def _logml(model: FitResult | BridgeResult, **kwargs) -> float:
    if isinstance(model, BridgeResult):
        return model.logml
    return bridge_sampler(model, **kwargs).logml


def _bayes_factor(logml1: float, logml2: float) -> float:
    """Bayes factor of model 1 over model 2 from log marginal likelihoods."""
    return float(np.exp(logml1 - logml2))


def _normalize_prior(prior_prob: Sequence[float] | None, n: int) -> np.ndarray:
    if prior_prob is None:
        return np.full(n, 1.0 / n)
    prior = np.asarray(prior_prob, dtype=float)
    if prior.shape != (n,):
        raise ValueError(f"Expected {n} prior probabilities, got {prior.size}")
    if not np.all(np.isfinite(prior)):
        raise ValueError("Prior probabilities must be finite")
    if np.any(prior < 0):
        raise ValueError("Prior probabilities must be non-negative")
    total = prior.sum()
    if total <= 0:
        raise ValueError("Prior probabilities must not all be zero")
    return prior / total


def _post_prob(
    logmls: Sequence[float], prior_prob: Sequence[float] | None = None
) -> np.ndarray:
    """
    Posterior model probabilities from log marginal likelihoods.

    ``p_i = prior_i * exp(logml_i - max(logml)) / sum_j(...)``. Prior
    probabilities default to equal weights and are normalized to sum to 1.

    Examples
    --------
    >>> _post_prob([-10.0, -12.0])
    array([0.88079708, 0.11920292])
    """
    logml = np.asarray(logmls, dtype=float)
    if logml.ndim != 1 or logml.size < 2:
        raise ValueError("At least two log marginal likelihoods are required")
    if not np.all(np.isfinite(logml)):
        raise ValueError("Log marginal likelihoods must be finite")

    prior = _normalize_prior(prior_prob, logml.size)
    weights = prior * np.exp(logml - logml.max())
    return weights / weights.sum()


def bayes_factor(
    model1: FitResult | BridgeResult,
    model2: FitResult | BridgeResult,
    **kwargs,
) -> BayesFactorResult:
    """
    Bayes factor of ``model1`` over ``model2`` via bridge sampling.

    Either argument may be a precomputed `BridgeResult`.

    Examples
    --------
    >>> bf = bayes_factor(fit_h1, fit_h0)
    >>> bf.bf > 1
    True
    """
    logml1 = _logml(model1, **kwargs)
    logml2 = _logml(model2, **kwargs)
    log_debug(f"logml1={logml1:.3f}, logml2={logml2:.3f}")
    return BayesFactorResult(
        bf=_bayes_factor(logml1, logml2), logml1=logml1, logml2=logml2
    )


def post_prob(
    *models: FitResult | BridgeResult,
    prior_prob: Sequence[float] | None = None,
    **kwargs,
) -> np.ndarray:
    """
    Posterior probabilities of the given models, summing to 1.

    Parameters
    ----------
    *models : FitResult or BridgeResult
        Two or more models
    prior_prob : list of float, optional
        Prior model probabilities; equal by default, normalized otherwise

    Examples
    --------
    >>> post_prob(fit_h1, fit_h0, prior_prob=[0.8, 0.2])
    """
    if len(models) < 2:
        raise ValueError("post_prob() needs at least two models")
    _normalize_prior(prior_prob, len(models))
    logmls = [_logml(m, **kwargs) for m in models]
    return _post_prob(logmls, prior_prob)
