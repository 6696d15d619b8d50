from collections.abc import Sequence

from brmskit.helpers.rcall import call_r
from brmskit.types.brms_results import PriorSpec


def _build_priors(priors: Sequence[PriorSpec] | None = None):
    """
    Combine prior specifications into a single R ``brmsprior`` object.

    Each spec becomes a ``brms::prior_string()`` call; the results are joined
    with R ``+``. Returns R ``NULL`` when no priors are given.
    """
    import rpy2.robjects as ro

    from brmskit.helpers.conversion import kwargs_r, py_to_r

    if not priors:
        return ro.NULL

    combined = None
    for p in priors:
        if not isinstance(p, PriorSpec):
            raise TypeError(
                f"priors must be PriorSpec instances (see brmskit.prior()), got {type(p).__name__}"
            )
        kwargs = p.to_brms_kwargs()
        prior_str = kwargs.pop("prior")
        prior_obj = call_r("brms::prior_string", py_to_r(prior_str), **kwargs_r(kwargs))
        combined = prior_obj if combined is None else ro.r("`+`")(combined, prior_obj)

    return combined
