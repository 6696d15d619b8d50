from typing import Any

import pandas as pd

from brmskit.helpers.log import log_debug
from brmskit.helpers.rcall import call_r

from ..types.brms_results import PriorSpec
from ..types.formula_dsl import Family, FormulaConstruct


def prior(
    prior: str,
    class_: str | None = None,
    coef: str | None = None,
    group: str | None = None,
    dpar: str | None = None,
    resp: str | None = None,
    nlpar: str | None = None,
    lb: float | None = None,
    ub: float | None = None,
    **kwargs: Any,
) -> PriorSpec:
    """
    Create a brms-style prior specification.

    Mirrors ``brms::prior_string()``: every argument corresponds to the
    brms parameter of the same name.

    Parameters
    ----------
    prior : str
        The prior as brms expects it, e.g. ``"normal(0, 1)"``,
        ``"student_t(5, 0, 10)"``, ``"lkj(5)"``, ``"dirichlet(1, 1, 1)"``.
    class_ : str, optional
        Parameter class (``"b"``, ``"sd"``, ``"Intercept"``, ``"ar"``,
        ``"rescor"``, ``"theta"``...). ``class`` is reserved in Python, so
        ``class_`` is used; ``prior(..., **{"class": "b"})`` also works.
    coef : str, optional
        Coefficient name.
    group : str, optional
        Grouping factor of group-level effects.
    dpar : str, optional
        Distributional parameter, e.g. ``"hu"``, ``"zi"``, ``"mu1"``.
    resp : str, optional
        Response name in multivariate models.
    nlpar : str, optional
        Non-linear parameter name.
    lb, ub : float, optional
        Bounds for truncated priors.

    Returns
    -------
    PriorSpec

    Notes
    -----
    The prior string itself is validated by brms when the model is built.

    Examples
    --------
    Priors from the epilepsy model ::

        priors = [
            prior("student_t(5, 0, 10)", class_="b"),
            prior("cauchy(0, 2)", class_="sd"),
        ]
        fit = brm("count ~ zAge + (1|patient)", data=epilepsy,
                  family=poisson(), priors=priors)

    Priors of a non-linear model ::

        [prior("normal(0, 2)", nlpar="a1"), prior("normal(0, 2)", nlpar="a2")]
    """
    if "class" in kwargs:
        if class_ is not None:
            raise TypeError("Pass either 'class_' or 'class', not both")
        class_ = kwargs.pop("class")
    if kwargs:
        raise TypeError(f"Unknown prior arguments: {sorted(kwargs)}")

    if not isinstance(prior, str) or not prior.strip():
        raise ValueError("prior must be a non-empty string")

    return PriorSpec(
        prior=prior,
        class_=class_,
        coef=coef,
        group=group,
        dpar=dpar,
        resp=resp,
        nlpar=nlpar,
        lb=lb,
        ub=ub,
    )


def get_prior(
    formula: FormulaConstruct | str,
    data: pd.DataFrame | dict,
    family: Family | str = "gaussian",
    autocor=None,
    data2: dict | None = None,
    **kwargs,
) -> pd.DataFrame:
    """
    Default priors of a model, one row per parameter (class).

    Columns follow ``brms::default_prior()``: prior, class, coef, group,
    resp, dpar, nlpar, lb, ub, source.

    Examples
    --------
    >>> get_prior("count ~ zAge + (1|patient)", epilepsy, family=poisson())
    """
    from brmskit.brms_functions.brm import _prepare_model_inputs
    from brmskit.helpers.conversion import kwargs_r, py_to_r, r_df_to_pandas

    formula_r, data, data2_r, _ = _prepare_model_inputs(formula, data, autocor, data2)
    log_debug(f"Getting default priors for {formula}")
    args = kwargs_r({"family": family, **kwargs})
    if data2_r is not None:
        args["data2"] = data2_r
    df_r = call_r("brms::default_prior", formula_r, data=py_to_r(data), **args)
    return r_df_to_pandas(call_r("base::as.data.frame", df_r))


default_prior = get_prior
