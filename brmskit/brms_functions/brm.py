from collections.abc import Mapping, Sequence
from typing import Any

import pandas as pd

from brmskit.config import get_settings
from brmskit.helpers import singleton
from brmskit.helpers.log import LogTime, log, log_warning
from brmskit.helpers.rcall import call_r

from ..helpers.conversion import (
    brmsfit_to_idata,
    kwargs_r,
    py_to_r,
    r_df_to_pandas,
)
from ..helpers.priors import _build_priors
from ..types.brms_results import FitResult, IDFit, PriorSpec
from ..types.formula_dsl import Family, FormulaConstruct
from .autocor import AutocorSpec, formula_response
from .formula import _execute_formula, bf

_WARNING_CORES = """`cores <= 1` runs all chains in the embedded R process.
This is slow and some Stan backends are unstable in that mode.
Use `cores >= 2` to sample chains in parallel worker processes."""


def _warn_cores(cores: int | None):
    if cores is None or cores <= 1:
        log_warning(_WARNING_CORES)


def _check_backend(backend: str):
    if backend not in ("cmdstanr", "rstan"):
        raise ValueError(f"backend must be 'cmdstanr' or 'rstan', got {backend!r}")
    if not singleton._has_backend(backend):
        raise RuntimeError(
            f"{backend} backend is not installed! "
            f"Please run install_brms(install_{backend}=True)"
        )


def _as_frame(data) -> pd.DataFrame | Any:
    if isinstance(data, Mapping) and not isinstance(data, pd.DataFrame):
        try:
            return pd.DataFrame(dict(data))
        except ValueError:
            # unequal lengths: pass as R list
            return data
    return data


def _data2_to_r(data2: dict | None):
    """data2 as an R named list; DataFrames become labelled R matrices."""
    import rpy2.robjects as ro

    if not data2:
        return None
    converted = {}
    for key, value in data2.items():
        if isinstance(value, pd.DataFrame):
            converted[key] = call_r("base::as.matrix", py_to_r(value))
        else:
            converted[key] = py_to_r(value)
    return ro.ListVector(converted)


def _prepare_model_inputs(
    formula: FormulaConstruct | str,
    data,
    autocor: AutocorSpec | None = None,
    data2: dict | None = None,
    priors: Sequence[PriorSpec] | None = None,
):
    """
    Apply an autocorrelation structure and convert formula, data and data2.

    Returns (formula_r, data, data2_r, priors), where ``data`` is still a
    Python object (lagged columns added for ARR structures).
    """
    data = _as_frame(data)
    data2 = dict(data2 or {})
    priors = list(priors) if priors else None

    if autocor is not None:
        if not isinstance(autocor, AutocorSpec):
            raise TypeError(
                f"autocor must be created with one of the cor_* functions, got {type(autocor).__name__}"
            )
        if autocor.kind == "arr":
            if not isinstance(data, pd.DataFrame):
                raise ValueError("cor_arr() needs data with columns of equal length")
            response = formula_response(formula)
            data = autocor.add_lags(data, response)
            priors = autocor.translate_priors(priors, response)
        formula = autocor.apply_to_formula(formula)
        for key, value in autocor.data2().items():
            if key in data2:
                raise ValueError(f"data2 already contains '{key}'")
            data2[key] = value

    return _execute_formula(formula), data, _data2_to_r(data2), priors


def _fit_to_result(fit_r, sample: bool = True) -> FitResult:
    if not sample:
        return FitResult(idata=IDFit(), r=fit_r)
    return FitResult(idata=brmsfit_to_idata(fit_r), r=fit_r)


def brm(
    formula: FormulaConstruct | str,
    data: dict | pd.DataFrame,
    priors: Sequence[PriorSpec] | None = None,
    family: Family | str | None = "gaussian",
    autocor: AutocorSpec | None = None,
    sample_prior: str | bool = "no",
    sample: bool = True,
    backend: str | None = None,
    formula_args: dict | None = None,
    cores: int | None = None,
    control: dict | None = None,
    inits: Any = None,
    data2: dict | None = None,
    save_all_pars: bool = False,
    **brm_args,
) -> FitResult:
    """
    Fit a Bayesian regression model with brms.

    Returns FitResult with .idata (arviz.InferenceData) and .r (brmsfit).

    [BRMS documentation and parameters](https://paulbuerkner.com/brms/reference/brm.html)

    Parameters
    ----------
    formula : str or FormulaConstruct
        Model formula, e.g. ``"y ~ x + (1|group)"``, or a construct built
        with `bf()`, `lf()`, `nlf()`...
    data : dict or pd.DataFrame
        Model data
    priors : list of PriorSpec, optional
        Priors created with `prior()`
    family : Family or str, default "gaussian"
        Response family. Ignored when the formula carries its own families.
    autocor : AutocorSpec, optional
        Autocorrelation structure from `cor_ar()`, `cor_arma()`, `cor_car()`...
    sample_prior : str or bool, default "no"
        Draw samples from the priors as well: "no", "yes" (or True), "only"
    sample : bool, default True
        If False the model is compiled but not sampled (``empty=TRUE``)
    backend : str, optional
        "cmdstanr" or "rstan"; defaults to the configured backend
    formula_args : dict, optional
        Arguments for `bf()` when ``formula`` is a string (e.g. ``{"nl": True}``)
    cores : int, optional
        Number of cores for parallel chains; defaults to the configured value
    control : dict, optional
        Sampler control, e.g. ``{"adapt_delta": 0.95}``
    inits : 0, "random", number or list of dict, optional
        Initial values (brms ``init``)
    data2 : dict, optional
        Extra data objects that are not data frames (e.g. matrices)
    save_all_pars : bool, default False
        Store draws of all parameters, as needed by `bridge_sampler()`
    **brm_args
        Further ``brms::brm()`` arguments: chains, iter, warmup, seed, thin,
        knots, save_mevars...

    Returns
    -------
    FitResult

    Examples
    --------
    Poisson model with priors:

    ```python
    from brmskit import brms

    epilepsy = brms.get_brms_data("epilepsy")
    fit1 = brms.brm(
        "count ~ zAge + zBase * Trt + (1|patient) + (1|obs)",
        data=epilepsy,
        family=brms.poisson(),
        priors=[
            brms.prior("student_t(5, 0, 10)", class_="b"),
            brms.prior("cauchy(0, 2)", class_="sd"),
        ],
    )
    ```

    Survival model with censoring:

    ```python
    kidney = brms.get_brms_data("kidney")
    fit3 = brms.brm("time | cens(censored) ~ age * sex + disease + (1|patient)",
                    data=kidney, family=brms.lognormal())
    ```
    """
    settings = get_settings()
    backend = backend or settings.backend
    cores = settings.cores if cores is None else cores

    _check_backend(backend)
    _warn_cores(cores)

    if formula is None:
        raise ValueError("formula is required")
    if isinstance(formula, str) and formula_args:
        formula = bf(formula, **formula_args)

    formula_obj, data, data2_r, priors = _prepare_model_inputs(
        formula, data, autocor, data2, priors
    )
    brms_prior = _build_priors(priors)

    if isinstance(sample_prior, bool):
        sample_prior = "yes" if sample_prior else "no"

    has_family = isinstance(formula, FormulaConstruct) and bool(formula.families())

    brm_kwargs: dict[str, Any] = {
        "data": data,
        "family": None if has_family else family,
        "sample_prior": sample_prior,
        "backend": backend,
        "cores": cores,
        "control": control,
        "init": inits,
        **brm_args,
    }
    brm_kwargs = kwargs_r(brm_kwargs)
    brm_kwargs["prior"] = brms_prior
    if data2_r is not None:
        brm_kwargs["data2"] = data2_r
    if save_all_pars:
        brm_kwargs["save_pars"] = call_r("brms::save_pars", all=py_to_r(True))

    if not sample:
        brm_kwargs["empty"] = py_to_r(True)
        log("Creating empty r object (no sampling)...")
    else:
        log(f"Fitting model with brms (backend: {backend})...")

    with LogTime("brm"):
        fit_r = call_r("brms::brm", formula_obj, **brm_kwargs)

    log("Fit done!")
    return _fit_to_result(fit_r, sample=sample)


fit = brm


def update(
    fit: FitResult,
    formula: FormulaConstruct | str | None = None,
    newdata: pd.DataFrame | None = None,
    family: Family | str | None = None,
    cores: int | None = None,
    **brm_args,
) -> FitResult:
    """
    Refit a model with a changed formula, data, family or sampler settings.

    brms reuses the compiled Stan model when the change allows it and
    recompiles otherwise.

    Parameters
    ----------
    fit : FitResult
        Model to update
    formula : str or FormulaConstruct, optional
        New formula; ``.`` refers to the old one, e.g. ``"~ . + Trt"`` or
        ``"~ . - Trt"``. ``bf("~ .", family=student())`` changes the family.
    newdata : pd.DataFrame, optional
        Data to refit on (required when added terms are not in the old data)
    family : Family or str, optional
        New response family
    **brm_args
        Further ``brms::brm()`` arguments (chains, iter...)

    Examples
    --------
    >>> fit2 = update(fit1, "~ . + Trt", newdata=epilepsy)
    >>> fit4 = update(fit1, family=student())
    """
    cores = get_settings().cores if cores is None else cores
    _warn_cores(cores)

    args = []
    if formula is not None:
        if isinstance(formula, str):
            args.append(call_r("stats::as.formula", py_to_r(formula)))
        else:
            args.append(_execute_formula(formula))

    kwargs = kwargs_r(
        {"newdata": newdata, "family": family, "cores": cores, **brm_args}
    )
    log("Updating model...")
    with LogTime("update"):
        fit_r = call_r("stats::update", fit.r, *args, **kwargs)
    return _fit_to_result(fit_r)


def brm_multiple(
    formula: FormulaConstruct | str,
    imputed_datasets: Sequence[pd.DataFrame],
    priors: Sequence[PriorSpec] | None = None,
    family: Family | str | None = "gaussian",
    combine: bool = True,
    backend: str | None = None,
    cores: int | None = None,
    **brm_args,
) -> FitResult:
    """
    Fit the same model to several imputed datasets and pool the draws.

    Parameters
    ----------
    formula : str or FormulaConstruct
        Model formula
    imputed_datasets : list of pd.DataFrame
        One dataset per imputation (e.g. from a multiple imputation tool)
    combine : bool, default True
        Combine the fits into one model (draws of all fits stacked)
    **brm_args
        Passed to ``brms::brm_multiple()`` / ``brms::brm()``

    Returns
    -------
    FitResult
        ``rhats`` holds the Rhat of every parameter in each separate fit
        (rows: imputations, columns: parameters). High Rhats across the
        combined chains are expected; check the per-imputation values.

    Examples
    --------
    >>> fit_imp = brm_multiple("bmi ~ age * chl", imputations, chains=1)
    >>> fit_imp.rhats.shape
    (5, 6)
    """
    import rpy2.robjects as ro

    settings = get_settings()
    backend = backend or settings.backend
    cores = settings.cores if cores is None else cores
    _check_backend(backend)

    datasets = list(imputed_datasets)
    if not datasets:
        raise ValueError("imputed_datasets must contain at least one dataset")
    if not all(isinstance(d, pd.DataFrame) for d in datasets):
        raise TypeError("imputed_datasets must be pandas DataFrames")

    r_list = ro.r("list")
    data_r = r_list(*[py_to_r(d) for d in datasets])

    kwargs = kwargs_r(
        {
            "family": family,
            "combine": combine,
            "backend": backend,
            "cores": cores,
            **brm_args,
        }
    )
    kwargs["prior"] = _build_priors(priors)

    log(f"Fitting model to {len(datasets)} imputed datasets...")
    with LogTime("brm_multiple"):
        fit_r = call_r("brms::brm_multiple", _execute_formula(formula), data=data_r, **kwargs)

    result = _fit_to_result(fit_r)
    rhats_r = fit_r.rx2("rhats")
    if rhats_r is not ro.NULL:
        result.rhats = r_df_to_pandas(rhats_r).reset_index(drop=True)
    return result


def add_criterion(
    fit: FitResult,
    criterion: str | Sequence[str],
    model_name: str | None = None,
    overwrite: bool = False,
    **kwargs,
) -> FitResult:
    """
    Store fit criteria ("loo", "waic", "kfold", "bayes_R2", "marglik"...) on
    the brmsfit.

    Returns a FitResult sharing the existing InferenceData; later calls of
    `loo()` / `waic()` reuse the stored values.
    """
    r_kwargs = kwargs_r(
        {
            "criterion": list(criterion) if not isinstance(criterion, str) else criterion,
            "model_name": model_name,
            "overwrite": overwrite,
            **kwargs,
        }
    )
    fit_r = call_r("brms::add_criterion", fit.r, **r_kwargs)
    return FitResult(idata=fit.idata, r=fit_r, rhats=fit.rhats)
