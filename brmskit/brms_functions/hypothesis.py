from collections.abc import Sequence

from brmskit.helpers.log import log_debug
from brmskit.helpers.rcall import call_r

from ..helpers.conversion import kwargs_r, py_to_r, r_df_to_pandas
from ..types.brms_results import FitResult, HypothesisResult


def hypothesis(
    model: FitResult,
    hypothesis: str | Sequence[str],
    alpha: float = 0.05,
    class_: str | None = "b",
    group: str = "",
    scope: str = "standard",
    **kwargs,
) -> HypothesisResult:
    """
    Test linear or non-linear hypotheses about model parameters.

    Wrapper around R ``brms::hypothesis()``. One-sided hypotheses
    (``"a > b"``) report the evidence ratio and posterior probability of the
    hypothesis; point hypotheses (``"a = b"``) report a Savage-Dickey
    evidence ratio when the model sampled its priors
    (``brm(..., sample_prior=True)``).

    Parameters
    ----------
    model : FitResult
        Fitted model
    hypothesis : str or list of str
        Hypotheses, e.g. ``"Intercept = 0"``, ``"zAge + zBase < 0"``,
        ``"exp(Intercept) > 1"``
    alpha : float, default 0.05
        The intervals are ``1 - alpha`` (two-sided) or ``1 - 2 * alpha``
        (one-sided) credible intervals
    class_ : str, default "b"
        Class prepended to parameter names; None or "" uses full names
    group : str, default ""
        Grouping factor when testing group-level parameters
    scope : str, default "standard"
        "standard", "ranef" or "coef"

    Returns
    -------
    HypothesisResult
        ``hypothesis`` has one row per hypothesis and the columns
        Hypothesis, Estimate, Est.Error, CI.Lower, CI.Upper, Evid.Ratio,
        Post.Prob, Star.

    Examples
    --------
    ```python
    h = brms.hypothesis(fit1, ["zAge < 0", "Trt1 - zBase = 0"])
    h.hypothesis.shape          # (2, 8)
    h.plot()

    brms.hypothesis(fit1, "Intercept = 0", class_="sd", group="patient")
    ```
    """
    if isinstance(hypothesis, str):
        hypothesis = [hypothesis]
    hypothesis = list(hypothesis)
    if not hypothesis:
        raise ValueError("At least one hypothesis is required")
    if not 0 < alpha < 1:
        raise ValueError("alpha must be between 0 and 1")

    log_debug(f"Testing {len(hypothesis)} hypotheses")
    r_kwargs = kwargs_r(
        {"alpha": alpha, "group": group, "scope": scope, **kwargs}
    )
    r_kwargs["class"] = py_to_r(class_ or "")

    res = call_r("brms::hypothesis", model.r, py_to_r(hypothesis), **r_kwargs)
    return _hypothesis_from_r(res, alpha)


def _hypothesis_from_r(res, alpha: float) -> HypothesisResult:
    import rpy2.robjects as ro

    table = r_df_to_pandas(res.rx2("hypothesis")).reset_index(drop=True)
    samples = r_df_to_pandas(res.rx2("samples")).reset_index(drop=True)

    prior_samples = None
    prior_r = res.rx2("prior_samples")
    if prior_r is not ro.NULL:
        prior_samples = r_df_to_pandas(prior_r).reset_index(drop=True)

    return HypothesisResult(
        hypothesis=table,
        samples=samples,
        prior_samples=prior_samples,
        alpha=alpha,
        r=res,
    )
