"""
Formula builders mirroring the brms formula functions.

Nothing here needs R until a formula is fitted: the builders return a
`FormulaConstruct` which `_execute_formula` renders into an R
``brmsformula``.
"""

from collections.abc import Callable
from typing import Any, cast

from brmskit.helpers.log import log_debug
from brmskit.helpers.rcall import call_r

from ..types.formula_dsl import Family, FormulaConstruct, FormulaPart


def bf(*formulas: str | FormulaConstruct, **formula_args) -> FormulaConstruct:
    """
    Set up a model formula for brms.

    Allows defining (potentially non-linear) additive multilevel models
    for all parameters of the assumed response distribution.

    Parameters
    ----------
    *formulas : str or FormulaConstruct
        Main formula (e.g. ``"y ~ x + (1|group)"``) followed by formulas of
        distributional or non-linear parameters (``"sigma ~ z"``,
        ``"a1 + a2 ~ 1"``) or `nlf()` parts.
    **formula_args
        Additional ``brms::brmsformula()`` arguments:

        - nl : bool
            Whether the main formula is non-linear
        - family : Family
            Response family (e.g. ``bf("~ .", family=student())``)
        - decomp : str
            Decomposition method ("QR")
        - center, sparse, loop, cmc : bool
        - parameter fixings such as ``sigma2="sigma1"`` or ``theta1=1``

    Returns
    -------
    FormulaConstruct

    See Also
    --------
    brms::brmsformula : R documentation
        https://paulbuerkner.com/brms/reference/brmsformula.html

    Examples
    --------
    ```python
    from brmskit import brms

    f = brms.bf("y ~ x1 + x2 + (1|group)")

    # non-linear model
    f = brms.bf("y ~ a1 - a2^x", "a1 + a2 ~ 1", nl=True)

    # distributional model
    f = brms.bf("count ~ x + (1|id1|patient)", "hu ~ x + (1|id1|patient)")
    ```
    """
    part = FormulaPart(_fun="bf", _args=list(formulas), _kwargs=formula_args)
    return FormulaConstruct._formula_parse(part)


def lf(
    *formulas: str | FormulaConstruct,
    flist=None,
    dpar: str | None = None,
    resp: str | None = None,
    center: bool | None = None,
    cmc: bool | None = None,
    sparse: bool | None = None,
    decomp: str | None = None,
) -> FormulaConstruct:
    """
    Linear formulas for distributional or non-linear parameters.

    Examples
    --------
    >>> bform = bf("y ~ x + (1|V|g)") + nlf("sigma ~ a") + lf("a ~ x + (1|V|g)")
    """
    formula_args = {
        "flist": flist,
        "dpar": dpar,
        "resp": resp,
        "center": center,
        "cmc": cmc,
        "sparse": sparse,
        "decomp": decomp,
    }
    return FormulaConstruct._formula_parse(
        FormulaPart("lf", list(formulas), formula_args)
    )


def nlf(
    *formulas: str | FormulaConstruct,
    flist=None,
    dpar: str | None = None,
    resp: str | None = None,
    loop: bool | None = None,
) -> FormulaConstruct:
    """
    Non-linear formulas for distributional parameters.

    Parameters
    ----------
    *formulas : str
        Non-linear formula, e.g. ``"sigma ~ a * exp(b * x)"``, optionally
        followed by formulas for its parameters.
    flist : list, optional
        Additional formulas passed as a list.
    dpar : str, optional
        Name of the distributional parameter.
    resp : str, optional
        Response name in multivariate models.
    loop : bool, optional
        Whether to evaluate the formula in a loop in Stan.

    Examples
    --------
    >>> f = bf("y ~ 1") + nlf("sigma ~ a * exp(b * x)")
    """
    formula_args = {
        "flist": flist,
        "dpar": dpar,
        "resp": resp,
        "loop": loop,
    }
    return FormulaConstruct._formula_parse(
        FormulaPart("nlf", list(formulas), formula_args)
    )


def acformula(autocor: str, resp: str | None = None) -> FormulaConstruct:
    """
    Autocorrelation terms, e.g. ``acformula("~ arma(p = 1, q = 1)")``.

    See `brmskit.brms_functions.autocor` for the ``cor_*`` helpers which
    build these terms from structured arguments.
    """
    return FormulaConstruct._formula_parse(
        FormulaPart("acformula", [autocor], {"resp": resp})
    )


def set_rescor(rescor: bool = True) -> FormulaConstruct:
    """
    Control residual correlations in multivariate models.

    Examples
    --------
    >>> f = bf("bmi | mi() ~ age * mi(chl)") + bf("chl | mi() ~ age") + set_rescor(False)
    """
    return FormulaConstruct._formula_parse(
        FormulaPart("set_rescor", [], {"rescor": rescor})
    )


def set_mecor(mecor: bool = True) -> FormulaConstruct:
    """Control correlations between latent ``me()`` terms."""
    return FormulaConstruct._formula_parse(
        FormulaPart("set_mecor", [], {"mecor": mecor})
    )


def set_nl(dpar: str | None = None, resp: str | None = None) -> FormulaConstruct:
    """
    Mark a formula (or the formula of one parameter) as non-linear.

    Examples
    --------
    >>> f = bf("y ~ a * inv_logit(x * b)") + lf("a + b ~ z") + set_nl()
    """
    return FormulaConstruct._formula_parse(
        FormulaPart("set_nl", [], {"dpar": dpar, "resp": resp})
    )


def _part_arg_to_r(value: Any, as_formula: bool):
    from brmskit.helpers.conversion import py_to_r

    if as_formula and isinstance(value, str) and "~" in value:
        return call_r("stats::as.formula", py_to_r(value))
    return py_to_r(value)


def _execute_part(part: FormulaPart | Family):
    from brmskit.helpers.conversion import py_to_r

    if isinstance(part, Family):
        return py_to_r(part)

    # positional strings are formulas; keyword strings stay strings (sigma2 = "sigma1")
    args = [_part_arg_to_r(a, as_formula=True) for a in part._args]
    kwargs = {
        k: _part_arg_to_r(v, as_formula=False)
        for k, v in part._kwargs.items()
        if v is not None
    }
    return call_r(f"brms::{part._fun}", *args, **kwargs)


def _execute_formula(formula: FormulaConstruct | str | Any):
    """
    Render a formula into an R ``brmsformula`` / ``mvbrmsformula``.

    Parts of one summand are added left to right, then the summands are added
    together, matching ``(bf(...) + lf(...) + family) + (bf(...) + family)``
    in R. R objects are returned unchanged.
    """
    import rpy2.robjects as ro
    from rpy2.rinterface_lib.sexp import Sexp

    if isinstance(formula, Sexp):
        return formula
    if isinstance(formula, str):
        formula = FormulaConstruct._formula_parse(formula)
    if not isinstance(formula, FormulaConstruct):
        raise TypeError(
            f"formula must be a string or FormulaConstruct, got {type(formula).__name__}"
        )

    # Formula helpers such as me() and mi() must be visible to R
    ro.r("suppressPackageStartupMessages(library(brms))")

    fun_add = cast(Callable, ro.r("function(a, b) a + b"))

    log_debug(f"Rendering formula {formula}")
    result = None
    for summand in formula:
        subresult = _execute_part(summand[0])
        for part in summand[1:]:
            subresult = fun_add(subresult, _execute_part(part))
        result = subresult if result is None else fun_add(result, subresult)

    if result is None:
        raise ValueError("Empty formula")
    return result
