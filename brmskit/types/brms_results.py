"""Result types for brmskit functions."""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, Optional, TypeVar

import arviz as az
import numpy as np
import pandas as pd
import xarray as xr

# Opaque handle to an R object (rpy2 Sexp). Only meaningful while the
# embedded R session that produced it is alive.
RObject = Any


@dataclass(frozen=True)
class PriorSpec:
    """
    Python representation of a brms prior specification.

    Maps onto the arguments of ``brms::prior_string()``. Use the `prior()`
    factory function to create instances.

    Attributes
    ----------
    prior : str
        Prior distribution as string (e.g., "normal(0, 1)", "exponential(2)")
    class_ : str, optional
        Parameter class: "b" (population-level effects), "sd" (group SD),
        "Intercept", "sigma", "cor", "ar", "ma", "rescor", "theta", etc.
    coef : str, optional
        Specific coefficient name for class-level priors
    group : str, optional
        Grouping variable for hierarchical effects
    dpar : str, optional
        Distributional parameter (e.g., "sigma", "hu", "zi", "mu1")
    resp : str, optional
        Response variable for multivariate models
    nlpar : str, optional
        Non-linear parameter name
    lb : float, optional
        Lower bound for truncated priors
    ub : float, optional
        Upper bound for truncated priors

    Examples
    --------
    ```python
    from brmskit.types import PriorSpec

    p1 = PriorSpec(prior="normal(0, 1)", class_="b")
    p2 = PriorSpec(prior="cauchy(0, 2)", class_="sd", group="patient")
    p3 = PriorSpec(prior="normal(0, 2)", nlpar="a1")
    ```
    """

    prior: str
    class_: Optional[str] = None
    coef: Optional[str] = None
    group: Optional[str] = None
    dpar: Optional[str] = None
    resp: Optional[str] = None
    nlpar: Optional[str] = None
    lb: Optional[float] = None
    ub: Optional[float] = None

    def to_brms_kwargs(self) -> Dict[str, Any]:
        """
        Convert PriorSpec to keyword arguments for brms::prior_string().

        Handles the `class_` -> `class` parameter name conversion and drops
        unset fields.

        Examples
        --------
        ```python
        p = prior("normal(0, 1)", class_="b", coef="age")
        p.to_brms_kwargs()
        # {'prior': 'normal(0, 1)', 'class': 'b', 'coef': 'age'}
        ```
        """
        out: dict[str, Any] = {"prior": self.prior}
        if self.class_ is not None:
            out["class"] = self.class_
        for name in ("coef", "group", "dpar", "resp", "nlpar", "lb", "ub"):
            value = getattr(self, name)
            if value is not None:
                out[name] = value
        return out


# -----------------------------------------------------
# az.InferenceData extensions for proper typing in IDEs
# -----------------------------------------------------


class IDFit(az.InferenceData):
    """
    Typed InferenceData for fitted brms models.

    Attributes
    ----------
    posterior : xr.Dataset
        Posterior samples of model parameters
    posterior_predictive : xr.Dataset
        Posterior predictive samples (with observation noise)
    log_likelihood : xr.Dataset
        Log-likelihood values for each observation
    observed_data : xr.Dataset
        Original observed response data
    constant_data : xr.Dataset
        Predictors used to fit the model
    """

    posterior: xr.Dataset
    posterior_predictive: xr.Dataset
    log_likelihood: xr.Dataset
    observed_data: xr.Dataset
    constant_data: xr.Dataset


class IDPosterior(az.InferenceData):
    posterior: xr.Dataset


class IDPosteriorPredictive(az.InferenceData):
    posterior_predictive: xr.Dataset


class IDPredictions(az.InferenceData):
    predictions: xr.Dataset


class IDLogLikelihood(az.InferenceData):
    log_likelihood: xr.Dataset


T = TypeVar("T", bound=az.InferenceData)


# ---------------------
# Function return types
# ---------------------


@dataclass
class FitResult:
    """
    Result from `brm()`.

    Attributes
    ----------
    idata : IDFit
        arviz InferenceData with posterior, posterior_predictive,
        log_likelihood, observed_data and constant_data groups
    r : RObject
        brmsfit R object from brms::brm()
    rhats : pd.DataFrame, optional
        Per-imputation Rhat values (rows: imputed datasets, columns:
        parameters). Only set by `brm_multiple()`.
    """

    idata: IDFit
    r: RObject
    rhats: Optional[pd.DataFrame] = None


@dataclass
class IDResult(Generic[T]):
    """
    Draws of a post-fit quantity as InferenceData together with the R result.

    Attributes
    ----------
    idata : arviz.InferenceData
        Draws shaped (chain, draw, obs_id)
    r : RObject
        Raw R matrix (or a dict of matrices keyed by response)
    """

    idata: T
    r: RObject


@dataclass
class SummaryResult:
    """
    Structured version of ``summary(brmsfit)``.

    Printing an instance produces a text summary modelled on brms'
    ``print.brmssummary``.
    """

    formula: str = ""
    data_name: str = ""
    group: Any = None
    nobs: int = 0
    ngrps: Dict[str, int] = field(default_factory=dict)
    autocor: Any = None
    prior: pd.DataFrame = field(default_factory=pd.DataFrame)
    algorithm: str = ""
    sampler: str = ""
    total_ndraws: int = 0
    chains: float = 0
    iter: float = 0
    warmup: float = 0
    thin: float = 1
    has_rhat: bool = False
    fixed: pd.DataFrame = field(default_factory=pd.DataFrame)
    spec_pars: pd.DataFrame = field(default_factory=pd.DataFrame)
    cor_pars: pd.DataFrame = field(default_factory=pd.DataFrame)
    random: Dict[str, pd.DataFrame] = field(default_factory=dict)

    def __str__(self) -> str:
        lines = ["Summary of brmsfit (Python)", ""]
        lines.append(f"Formula: {self.formula}")
        lines.append(
            f"   Data: {self.data_name} (Number of observations: {self.nobs})"
        )
        lines.append(
            f"  Draws: {int(self.chains)} chains, each with iter = {int(self.iter)}; "
            f"warmup = {int(self.warmup)}; thin = {int(self.thin)};"
        )
        lines.append(f"         total post-warmup draws = {self.total_ndraws}")
        lines.append("")

        if self.random:
            lines.append("Group-Level Effects:")
            for name, df in self.random.items():
                n = self.ngrps.get(name)
                suffix = f" (Number of levels: {n})" if n is not None else ""
                lines.append(f"~{name}{suffix}")
                lines.append(_format_frame(df))
                lines.append("")

        lines.append("Population-Level Effects:")
        lines.append(_format_frame(self.fixed))
        lines.append("")

        if not self.spec_pars.empty:
            lines.append("Family Specific Parameters:")
            lines.append(_format_frame(self.spec_pars))
            lines.append("")

        if not self.cor_pars.empty:
            lines.append("Correlation Structures:")
            lines.append(_format_frame(self.cor_pars))
            lines.append("")

        lines.append(f"Algorithm: {self.algorithm} ({self.sampler})")
        if self.has_rhat:
            lines.append(
                "Bulk_ESS and Tail_ESS are effective sample size measures, and Rhat is "
                "the potential scale reduction factor on split chains (at convergence, Rhat = 1)."
            )
        return "\n".join(lines)

    def __repr__(self) -> str:
        return self.__str__()


def _format_frame(df: pd.DataFrame) -> str:
    if df is None or len(df) == 0:
        return "  (none)"
    return df.to_string(float_format=lambda v: f"{v:.2f}")


@dataclass
class LooResult:
    """
    Information criterion estimate (LOO, WAIC or K-fold).

    Attributes
    ----------
    criterion : str
        "loo", "waic" or "kfold".
    estimates : pd.DataFrame
        Rows ``elpd_<criterion>``, ``p_<criterion>``, ``<criterion>ic``
        (``looic``, ``waic``, ``kfoldic``); columns ``Estimate`` and ``SE``.
    pointwise : pd.DataFrame
        One row per observation; columns follow the R ``pointwise`` matrix.
    pareto_k : np.ndarray, optional
        Pareto-k diagnostics (LOO only).
    model_name : str
        Label used in comparisons.
    r : RObject
        The R ``loo`` object.
    """

    criterion: str
    estimates: pd.DataFrame
    pointwise: pd.DataFrame = field(default_factory=pd.DataFrame)
    pareto_k: Optional[np.ndarray] = None
    model_name: str = ""
    r: RObject = None

    @property
    def elpd(self) -> float:
        return float(self.estimates.iloc[0]["Estimate"])

    @property
    def ic(self) -> float:
        """Estimate on the deviance scale (``looic``, ``waic``, ``kfoldic``)."""
        return float(self.estimates.iloc[2]["Estimate"])

    @property
    def se_ic(self) -> float:
        return float(self.estimates.iloc[2]["SE"])

    @property
    def ic_pointwise(self) -> np.ndarray:
        name = self.estimates.index[2]
        if name in self.pointwise.columns:
            return self.pointwise[name].to_numpy(dtype=float)
        # Deviance scale is -2 * elpd
        return -2.0 * self.pointwise[self.estimates.index[0]].to_numpy(dtype=float)

    @property
    def kfoldic(self) -> float:
        if self.criterion != "kfold":
            raise AttributeError("kfoldic is only defined for K-fold results")
        return self.ic

    def __str__(self) -> str:
        head = f"Computed from {self.criterion.upper()}"
        if self.model_name:
            head = f"{head} for model '{self.model_name}'"
        return f"{head}\n{self.estimates.to_string(float_format=lambda v: f'{v:.1f}')}"


# K-fold results share the layout of LOO and WAIC results
KFoldResult = LooResult


@dataclass
class ICComparison:
    """
    Information criteria of several models plus their pairwise differences.

    Attributes
    ----------
    results : dict[str, LooResult]
        One result per model, keyed by model name (in the order given).
    ic_diffs : pd.DataFrame
        One row per model pair ``"m1 - m2"``; columns ``<IC>`` (difference of
        the deviance-scale estimates) and ``SE``.
    """

    results: Dict[str, LooResult]
    ic_diffs: pd.DataFrame

    def __getitem__(self, key: str) -> LooResult:
        return self.results[key]

    def __len__(self) -> int:
        return len(self.results)


@dataclass
class HypothesisResult:
    """
    Result of `hypothesis()`.

    Attributes
    ----------
    hypothesis : pd.DataFrame
        One row per hypothesis with columns Hypothesis, Estimate, Est.Error,
        CI.Lower, CI.Upper, Evid.Ratio, Post.Prob, Star.
    samples : pd.DataFrame
        Posterior draws of each hypothesis (columns H1, H2, ...).
    prior_samples : pd.DataFrame, optional
        Prior draws of each hypothesis when the model sampled its priors.
    alpha : float
        Significance level of the reported intervals.
    """

    hypothesis: pd.DataFrame
    samples: pd.DataFrame
    prior_samples: Optional[pd.DataFrame] = None
    alpha: float = 0.05
    r: RObject = None

    def plot(self, **kwargs):
        from brmskit.brms_functions.plotting import plot_hypothesis

        return plot_hypothesis(self, **kwargs)

    def __str__(self) -> str:
        return f"Hypothesis Tests:\n{self.hypothesis.to_string()}"


@dataclass
class BridgeResult:
    """Log marginal likelihood estimated by ``bridgesampling::bridge_sampler``."""

    logml: float
    niter: int = 0
    method: str = "normal"
    r: RObject = None


@dataclass
class BayesFactorResult:
    """Bayes factor of model 1 over model 2."""

    bf: float
    logml1: float
    logml2: float

    def __str__(self) -> str:
        return f"Estimated Bayes factor in favor of model 1 over model 2: {self.bf:.5f}"


class ConditionalEffects(Mapping[str, pd.DataFrame]):
    """
    Conditional (marginal) effects, keyed by effect name (e.g. ``"x"``,
    ``"x2:fac"``).

    Each value is a DataFrame holding the grid of predictor values together
    with the ``estimate__``, ``se__``, ``lower__`` and ``upper__`` columns
    computed by brms. ``points`` holds the observed data used for overlaying
    raw points in plots. ``surface`` is set when interactions of numeric
    predictors were computed as two-dimensional surfaces.
    """

    def __init__(
        self,
        effects: Dict[str, pd.DataFrame],
        points: Optional[Dict[str, pd.DataFrame]] = None,
        smooths: bool = False,
        surface: bool = False,
        r: RObject = None,
    ):
        self._effects = dict(effects)
        self.points = points or {}
        self.smooths = smooths
        self.surface = surface
        self.r = r

    def __getitem__(self, key: str) -> pd.DataFrame:
        return self._effects[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._effects)

    def __len__(self) -> int:
        return len(self._effects)

    def plot(self, **kwargs):
        """Plot every effect; returns a list of matplotlib Axes (see `plot_conditional_effects`)."""
        from brmskit.brms_functions.plotting import plot_conditional_effects

        return plot_conditional_effects(self, **kwargs)

    def __repr__(self) -> str:
        return f"ConditionalEffects({list(self._effects)!r})"
