"""
Main brms module with Pythonic API.

```python
from brmskit import brms

epilepsy = brms.get_brms_data("epilepsy")
fit = brms.brm("count ~ zAge + zBase * Trt + (1|patient)",
               data=epilepsy, family=brms.poisson())
brms.summary(fit)
```
"""

from brmskit.brms_functions import families
from brmskit.brms_functions.autocor import (
    AutocorSpec,
    cor_ar,
    cor_arma,
    cor_arr,
    cor_car,
    cor_errorsar,
    cor_lagsar,
    cor_ma,
    cor_sar,
)
from brmskit.brms_functions.bridge import bayes_factor, bridge_sampler, post_prob
from brmskit.brms_functions.brm import add_criterion, brm, brm_multiple, fit, update
from brmskit.brms_functions.criteria import LOO, WAIC, kfold, loo, loo_compare, reloo, waic
from brmskit.brms_functions.diagnostics import (
    VarCorr,
    as_draws_matrix,
    bayes_R2,
    coef,
    fixef,
    formula_of,
    ndraws,
    nobs,
    nsamples,
    parnames,
    posterior_summary,
    prior_summary,
    ranef,
    rhat,
    summary,
    variables,
)
from brmskit.brms_functions.effects import (
    conditional_effects,
    conditional_smooths,
    marginal_effects,
    marginal_smooths,
)
from brmskit.brms_functions.families import (
    Beta,
    Gamma,
    acat,
    asym_laplace,
    bernoulli,
    beta_binomial,
    binomial,
    brmsfamily,
    categorical,
    cratio,
    cumulative,
    dirichlet,
    exgaussian,
    exponential,
    family,
    frechet,
    gaussian,
    gen_extreme_value,
    geometric,
    hurdle_gamma,
    hurdle_lognormal,
    hurdle_negbinomial,
    hurdle_poisson,
    lognormal,
    mixture,
    multinomial,
    negbinomial,
    poisson,
    shifted_lognormal,
    skew_normal,
    sratio,
    student,
    von_mises,
    weibull,
    wiener,
    zero_inflated_beta,
    zero_inflated_binomial,
    zero_inflated_negbinomial,
    zero_inflated_poisson,
    zero_one_inflated_beta,
)
from brmskit.brms_functions.formula import (
    acformula,
    bf,
    lf,
    nlf,
    set_mecor,
    set_nl,
    set_rescor,
)
from brmskit.brms_functions.hypothesis import hypothesis
from brmskit.brms_functions.io import (
    get_brms_data,
    get_data,
    read_rds_fit,
    read_rds_raw,
    save_rds,
)
from brmskit.brms_functions.plotting import pp_check
from brmskit.brms_functions.prediction import (
    fitted,
    log_lik,
    posterior_epred,
    posterior_linpred,
    posterior_predict,
    pp_mixture,
    predict,
)
from brmskit.brms_functions.prior import default_prior, get_prior, prior
from brmskit.brms_functions.stan import make_stancode, make_standata
from brmskit.runtime import get_brms_version, install_brms, status
from brmskit.types import (
    BayesFactorResult,
    BridgeResult,
    ConditionalEffects,
    FitResult,
    HypothesisResult,
    ICComparison,
    IDFit,
    IDResult,
    KFoldResult,
    LooResult,
    PriorSpec,
    SummaryResult,
)

__all__ = [
    # R env
    "install_brms", "get_brms_version", "status",

    # IO
    "get_brms_data", "get_data", "save_rds", "read_rds_raw", "read_rds_fit",

    # brm
    "brm", "fit", "update", "brm_multiple", "add_criterion",

    # formula
    "bf", "lf", "nlf", "acformula", "set_rescor", "set_mecor", "set_nl",

    # priors
    "prior", "get_prior", "default_prior",

    # autocorrelation
    "AutocorSpec", "cor_ar", "cor_ma", "cor_arma", "cor_arr", "cor_car",
    "cor_sar", "cor_lagsar", "cor_errorsar",

    # prediction
    "predict", "fitted", "pp_mixture",
    "posterior_predict", "posterior_epred", "posterior_linpred", "log_lik",

    # diagnosis
    "summary", "fixef", "ranef", "coef", "VarCorr", "nobs", "ndraws", "nsamples",
    "variables", "parnames", "rhat", "posterior_summary", "prior_summary",
    "formula_of", "bayes_R2", "as_draws_matrix",

    # effects
    "conditional_effects", "marginal_effects", "conditional_smooths", "marginal_smooths",

    # criteria
    "loo", "waic", "LOO", "WAIC", "kfold", "reloo", "loo_compare",

    # hypothesis & bridge sampling
    "hypothesis", "bridge_sampler", "bayes_factor", "post_prob",

    # plots
    "pp_check",

    # families
    "families", "family", "brmsfamily", "mixture",
    "gaussian", "student", "skew_normal", "binomial", "bernoulli", "beta_binomial",
    "Beta", "poisson", "negbinomial", "geometric", "Gamma", "lognormal",
    "shifted_lognormal", "exponential", "weibull", "frechet", "gen_extreme_value",
    "exgaussian", "wiener", "von_mises", "asym_laplace", "categorical",
    "multinomial", "dirichlet", "cumulative", "sratio", "cratio", "acat",
    "hurdle_poisson", "hurdle_negbinomial", "hurdle_gamma", "hurdle_lognormal",
    "zero_inflated_poisson", "zero_inflated_negbinomial", "zero_inflated_binomial",
    "zero_inflated_beta", "zero_one_inflated_beta",

    # stan
    "make_stancode", "make_standata",

    # types
    "FitResult", "IDFit", "IDResult", "PriorSpec", "SummaryResult", "LooResult",
    "KFoldResult", "ICComparison", "HypothesisResult", "BridgeResult",
    "BayesFactorResult", "ConditionalEffects",
]
