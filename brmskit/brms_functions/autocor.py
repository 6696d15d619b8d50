"""
Autocorrelation structures.

The ``cor_*`` helpers describe a correlation structure with structured
arguments and render it into a brms autocorrelation term (``arma()``,
``car()``, ``sar()``) that `brm()` adds to the model with `acformula()`.
Spatial structures also provide their weight matrix for ``data2``.

Examples
--------
```python
from brmskit import brms

fit = brms.brm("y ~ x", data=df, autocor=brms.cor_ar(p=5))
fit = brms.brm("y ~ x + (1|g)", data=df,
               autocor=brms.cor_arma("~ 1 | g", p=1, q=1, cov=True))
fit = brms.brm("y | trials(size) ~ x1 + x2", data=dat, family=brms.binomial(),
               autocor=brms.cor_car(W, "~ 1 | obs"))
```
"""

import re
from dataclasses import dataclass, field, replace
from typing import Literal

import numpy as np
import pandas as pd

from ..types.brms_results import PriorSpec
from ..types.formula_dsl import FormulaConstruct, FormulaPart

__all__ = [
    "AutocorSpec",
    "cor_ar",
    "cor_ma",
    "cor_arma",
    "cor_arr",
    "cor_car",
    "cor_lagsar",
    "cor_errorsar",
]

_CAR_TYPES = ("escar", "esicar", "icar", "bym2")
_SAR_TYPES = ("lag", "error")


@dataclass(frozen=True, eq=False)
class AutocorSpec:
    """
    An autocorrelation structure.

    Attributes
    ----------
    kind : {"arma", "arr", "car", "sar"}
    time : str, optional
        Time variable (ARMA); None means the data order.
    group : str, optional
        Grouping variable; correlations are modelled within its levels.
    p, q : int
        Autoregressive and moving-average orders (ARMA).
    r : int
        Number of lagged responses used as predictors (ARR).
    cov : bool
        Whether ARMA effects are modelled on the covariance matrix of the
        residuals.
    W : pd.DataFrame, optional
        Spatial weight / adjacency matrix (CAR, SAR); rows and columns are
        labelled with the location names.
    type : str, optional
        CAR type ("escar", "esicar", "icar", "bym2") or SAR type
        ("lag", "error").
    name : str
        Name under which ``W`` is passed in ``data2``.
    """

    kind: Literal["arma", "arr", "car", "sar"]
    time: str | None = None
    group: str | None = None
    p: int = 0
    q: int = 0
    r: int = 0
    cov: bool = False
    W: pd.DataFrame | None = field(default=None, repr=False)
    type: str | None = None
    name: str = "M"

    def term(self) -> str:
        """
        brms autocorrelation term for this structure.

        Examples
        --------
        >>> cor_arma("~ tim | id", p=1).term()
        'arma(time = tim, gr = id, p = 1, q = 0, cov = FALSE)'
        >>> cor_car(W, "~ 1 | obs").term()
        "car(M, gr = obs, type = 'escar')"
        """
        if self.kind == "arma":
            args = []
            if self.time is not None:
                args.append(f"time = {self.time}")
            if self.group is not None:
                args.append(f"gr = {self.group}")
            args += [f"p = {self.p}", f"q = {self.q}", f"cov = {_r_bool(self.cov)}"]
            return f"arma({', '.join(args)})"
        if self.kind == "car":
            args = [self.name]
            if self.group is not None:
                args.append(f"gr = {self.group}")
            args.append(f"type = '{self.type}'")
            return f"car({', '.join(args)})"
        if self.kind == "sar":
            return f"sar({self.name}, type = '{self.type}')"
        # ARR has no brms term; see lag_terms()
        return ""

    def data2(self) -> dict[str, pd.DataFrame]:
        """Objects the structure needs in ``data2`` (the weight matrix of spatial models)."""
        if self.W is None:
            return {}
        return {self.name: self.W}

    def lag_terms(self, response: str) -> list[str]:
        """Names of the lagged-response predictors of an ARR structure."""
        return [f"{_safe_name(response)}_lag{i}" for i in range(1, self.r + 1)]

    def add_lags(self, data: pd.DataFrame, response: str) -> pd.DataFrame:
        """
        Return a copy of ``data`` with the lagged-response columns of an ARR
        structure added.

        Lags are taken in data order within each level of ``group``; lags
        before the first observation are 0.
        """
        if self.kind != "arr":
            return data
        if response not in data.columns:
            raise ValueError(f"Response '{response}' not found in data")

        out = data.copy()
        y = out[response]
        grouped = y.groupby(out[self.group], sort=False) if self.group else None
        for i, name in enumerate(self.lag_terms(response), start=1):
            lagged = grouped.shift(i) if grouped is not None else y.shift(i)
            out[name] = lagged.fillna(0.0).to_numpy(dtype=float)
        return out

    def translate_priors(
        self, priors: list[PriorSpec] | None, response: str
    ) -> list[PriorSpec] | None:
        """
        Map priors of class "arr" onto the lag coefficients (class "b") of an
        ARR structure. Other priors are returned unchanged.
        """
        if not priors or self.kind != "arr":
            return priors
        out: list[PriorSpec] = []
        for p in priors:
            if p.class_ == "arr":
                out.extend(
                    replace(p, class_="b", coef=name) for name in self.lag_terms(response)
                )
            else:
                out.append(p)
        return out

    def apply_to_formula(self, formula: FormulaConstruct | str) -> FormulaConstruct | str:
        """Add this structure to a model formula."""
        from .formula import acformula

        if self.kind == "arr":
            response = formula_response(formula)
            return _add_predictors(formula, self.lag_terms(response))
        return FormulaConstruct._formula_parse(formula) + acformula(f"~ {self.term()}")

    def __repr__(self) -> str:
        if self.kind == "arr":
            return f"cor_arr(r = {self.r})"
        return f"AutocorSpec({self.term()})"


def _r_bool(value: bool) -> str:
    return "TRUE" if value else "FALSE"


def _safe_name(name: str) -> str:
    return re.sub(r"\W", "_", name)


def _check_order(name: str, value) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise ValueError(f"{name} must be a non-negative integer, got {value!r}")
    if value < 0:
        raise ValueError(f"{name} must be a non-negative integer, got {value!r}")
    return int(value)


def _parse_cor_formula(formula: str | None) -> tuple[str | None, str | None]:
    """Split ``"~ time | group"`` into (time, group); ``1`` means no time variable."""
    if formula is None:
        return None, None
    text = formula.strip()
    if not text.startswith("~"):
        raise ValueError(f"Correlation formula must be one-sided, got {formula!r}")
    text = text[1:].strip()
    if "|" in text:
        time, group = (s.strip() for s in text.split("|", 1))
    else:
        time, group = text, None
    if not time or time == "1":
        time = None
    if group == "":
        raise ValueError(f"Empty grouping variable in {formula!r}")
    return time, group


def _weights(W, square_only: bool) -> pd.DataFrame:
    if isinstance(W, pd.DataFrame):
        if set(W.columns) != set(W.index):
            raise ValueError("Row and column labels of W must match")
        W = W.loc[:, W.index]
        names = [str(i) for i in W.index]
        mat = W.to_numpy(dtype=float)
    else:
        mat = np.asarray(W, dtype=float)
        names = None

    if mat.ndim != 2 or mat.shape[0] != mat.shape[1]:
        raise ValueError(f"W must be a square matrix, got shape {mat.shape}")
    if not square_only:
        if not np.allclose(mat, mat.T):
            raise ValueError("W must be symmetric")
        if np.any(np.diag(mat) != 0):
            raise ValueError("The diagonal of W must be zero")

    if names is None:
        names = [str(i) for i in range(1, mat.shape[0] + 1)]
    return pd.DataFrame(mat, index=names, columns=names)


def cor_arma(
    formula: str = "~1", p: int = 0, q: int = 0, r: int = 0, cov: bool = False
) -> AutocorSpec:
    """
    ARMA(p, q) correlation structure.

    Parameters
    ----------
    formula : str
        ``"~ time | group"``; ``"~ 1"`` uses the data order, ``"~ 1 | g"``
        correlates within levels of ``g`` only.
    p, q : int
        Autoregressive and moving-average orders; ``p + q`` must be positive.
    r : int
        Must be 0. Use `cor_arr()` for lagged responses.
    cov : bool
        Model the ARMA effects on the residual covariance matrix.
    """
    p = _check_order("p", p)
    q = _check_order("q", q)
    r = _check_order("r", r)
    if r:
        raise ValueError("ARR effects are specified with cor_arr(), not cor_arma(r=...)")
    if p + q == 0:
        raise ValueError("An ARMA structure needs p + q > 0")
    time, group = _parse_cor_formula(formula)
    return AutocorSpec(kind="arma", time=time, group=group, p=p, q=q, cov=bool(cov))


def cor_ar(formula: str = "~1", p: int = 1, cov: bool = False) -> AutocorSpec:
    """AR(p) correlation structure, see `cor_arma()`."""
    return cor_arma(formula, p=p, q=0, cov=cov)


def cor_ma(formula: str = "~1", q: int = 1, cov: bool = False) -> AutocorSpec:
    """MA(q) correlation structure, see `cor_arma()`."""
    return cor_arma(formula, p=0, q=q, cov=cov)


def cor_arr(formula: str = "~1", r: int = 1) -> AutocorSpec:
    """
    Autoregressive effects of the response (ARR).

    The ``r`` previous responses are added to the data as predictors named
    ``<response>_lag1`` ... ``<response>_lag<r>``; priors of class "arr"
    become priors on these coefficients.
    """
    r = _check_order("r", r)
    if r < 1:
        raise ValueError("cor_arr() needs r >= 1")
    _, group = _parse_cor_formula(formula)
    return AutocorSpec(kind="arr", group=group, r=r)


def cor_car(W, formula: str = "~1", type: str = "escar") -> AutocorSpec:
    """
    Spatial conditional autoregressive (CAR) structure.

    Parameters
    ----------
    W : array-like or pd.DataFrame
        Symmetric adjacency matrix with zero diagonal. DataFrame labels are
        used as location names; otherwise locations are named 1..K.
    formula : str
        ``"~ 1 | location"``: the grouping variable whose values match the
        rows of ``W``.
    type : str
        "escar" (default), "esicar", "icar" or "bym2".
    """
    if type not in _CAR_TYPES:
        raise ValueError(f"type must be one of {_CAR_TYPES!r}, got {type!r}")
    _, group = _parse_cor_formula(formula)
    return AutocorSpec(kind="car", group=group, W=_weights(W, square_only=False), type=type)


def cor_sar(W, type: str = "lag") -> AutocorSpec:
    """Spatial simultaneous autoregressive (SAR) structure."""
    if type not in _SAR_TYPES:
        raise ValueError(f"type must be one of {_SAR_TYPES!r}, got {type!r}")
    return AutocorSpec(kind="sar", W=_weights(W, square_only=True), type=type)


def cor_lagsar(W) -> AutocorSpec:
    """Spatial lag SAR structure."""
    return cor_sar(W, type="lag")


def cor_errorsar(W) -> AutocorSpec:
    """Spatial error SAR structure."""
    return cor_sar(W, type="error")


# -----------------------------
# formula helpers
# -----------------------------


def _main_formula_part(formula: FormulaConstruct) -> FormulaPart:
    for leaf in formula.iterate():
        if isinstance(leaf, FormulaPart) and leaf._fun == "bf" and leaf._args:
            if isinstance(leaf._args[0], str):
                return leaf
    raise ValueError("Could not find the main formula (a bf() part with a string formula)")


def formula_response(formula: FormulaConstruct | str) -> str:
    """
    Name of the response variable of a (univariate) formula.

    Addition terms are dropped: ``"y | trials(n) ~ x"`` gives ``"y"``.
    """
    if isinstance(formula, FormulaConstruct):
        text = str(_main_formula_part(formula)._args[0])
    else:
        text = formula
    if "~" not in text:
        raise ValueError(f"Formula has no response: {text!r}")
    lhs = text.split("~", 1)[0].split("|", 1)[0].strip()
    if not lhs:
        raise ValueError(f"Formula has no response: {text!r}")
    return lhs


def _add_predictors(
    formula: FormulaConstruct | str, terms: list[str]
) -> FormulaConstruct | str:
    extra = " + ".join(terms)
    if isinstance(formula, str):
        return f"{formula} + {extra}"

    main = _main_formula_part(formula)
    updated = FormulaPart(
        _fun=main._fun,
        _args=[f"{main._args[0]} + {extra}", *main._args[1:]],
        _kwargs=dict(main._kwargs),
    )

    def _swap(node):
        if node is main:
            return updated
        if isinstance(node, list):
            return [_swap(child) for child in node]
        return node

    return FormulaConstruct(_parts=_swap(formula._parts))
