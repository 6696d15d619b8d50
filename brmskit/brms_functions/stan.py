from typing import Any

import numpy as np
import pandas as pd

from brmskit.helpers.log import log_debug
from brmskit.helpers.rcall import call_r

from ..helpers.conversion import _coerce_stan_types, kwargs_r, py_to_r, r_array_to_numpy
from ..helpers.priors import _build_priors
from ..types.brms_results import PriorSpec
from ..types.formula_dsl import Family, FormulaConstruct
from .autocor import AutocorSpec


def _model_args(formula, data, priors, family, autocor, data2, kwargs) -> tuple[Any, dict]:
    from .brm import _prepare_model_inputs

    formula_r, data, data2_r, priors = _prepare_model_inputs(
        formula, data, autocor, data2, priors
    )
    has_family = isinstance(formula, FormulaConstruct) and bool(formula.families())
    args = kwargs_r({"family": None if has_family else family, **kwargs})
    args["data"] = py_to_r(data)
    args["prior"] = _build_priors(priors)
    if data2_r is not None:
        args["data2"] = data2_r
    return formula_r, args


def make_stancode(
    formula: FormulaConstruct | str,
    data: pd.DataFrame | dict,
    priors: list[PriorSpec] | None = None,
    family: Family | str = "gaussian",
    autocor: AutocorSpec | None = None,
    data2: dict | None = None,
    **kwargs,
) -> str:
    """
    Generate the Stan program brms would compile for a model.

    Takes the same model arguments as `brm()`.

    Returns
    -------
    str
        Complete Stan program

    Examples
    --------
    ```python
    code = brms.make_stancode("count ~ zAge + (1|patient)", epilepsy,
                              family=brms.poisson())
    print(code)
    ```
    """
    formula_r, args = _model_args(formula, data, priors, family, autocor, data2, kwargs)
    code = call_r("brms::stancode", formula_r, **args)
    log_debug("Generated Stan code")
    return str(code[0])


def make_standata(
    formula: FormulaConstruct | str,
    data: pd.DataFrame | dict,
    priors: list[PriorSpec] | None = None,
    family: Family | str = "gaussian",
    autocor: AutocorSpec | None = None,
    data2: dict | None = None,
    **kwargs,
) -> dict[str, Any]:
    """
    Data passed to Stan for a model, keyed by Stan variable name.

    Values are converted to match the types declared in the Stan data block:
    ``int`` variables become Python ints or int64 arrays, length-1 arrays
    become scalars.

    Examples
    --------
    >>> sdata = make_standata("y ~ x", df)
    >>> sdata["N"]
    100
    """
    formula_r, args = _model_args(formula, data, priors, family, autocor, data2, kwargs)
    sdata_r = call_r("brms::standata", formula_r, **args)
    code = str(call_r("brms::stancode", formula_r, **args)[0])

    stan_data: dict[str, Any] = {}
    for name, value in zip(sdata_r.names, sdata_r):
        stan_data[str(name)] = np.asarray(r_array_to_numpy(value))
    return _coerce_stan_types(code, stan_data)
