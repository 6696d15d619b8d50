"""
Response families.

Each constructor returns a `Family` value; it is rendered into an R
``brmsfamily`` object only when a model is fitted. Link arguments default to
None, which keeps the brms default link.

Examples
--------
```python
from brmskit import brms

brms.poisson()
brms.binomial("probit")
brms.sratio("cloglog")
brms.gaussian(link_sigma="identity")
brms.mixture(brms.gaussian(), nmix=3)
```
"""

from typing import Any

from brmskit.helpers.rcall import call_r

from ..types.brms_results import FitResult
from ..types.formula_dsl import Family

__all__ = [
    "Family",
    "brmsfamily",
    "mixture",
    "family",
    "gaussian",
    "student",
    "skew_normal",
    "binomial",
    "bernoulli",
    "beta_binomial",
    "Beta",
    "poisson",
    "negbinomial",
    "geometric",
    "Gamma",
    "lognormal",
    "shifted_lognormal",
    "exponential",
    "weibull",
    "frechet",
    "gen_extreme_value",
    "exgaussian",
    "wiener",
    "von_mises",
    "asym_laplace",
    "categorical",
    "multinomial",
    "dirichlet",
    "cumulative",
    "sratio",
    "cratio",
    "acat",
    "hurdle_poisson",
    "hurdle_negbinomial",
    "hurdle_gamma",
    "hurdle_lognormal",
    "zero_inflated_poisson",
    "zero_inflated_negbinomial",
    "zero_inflated_binomial",
    "zero_inflated_beta",
    "zero_one_inflated_beta",
]


def brmsfamily(family: str, link: str | None = None, **links_and_options) -> Family:
    """
    Generic family constructor, mirroring ``brms::brmsfamily()``.

    Parameters
    ----------
    family : str
        brms family name, e.g. "gaussian", "zero_inflated_negbinomial".
    link : str, optional
        Link of the main parameter (``mu``).
    **links_and_options
        ``link_<dpar>="..."`` links of auxiliary parameters; any other
        argument (``threshold``, ``refcat``...) is passed to brms as is.

    Examples
    --------
    >>> brmsfamily("cumulative", "probit", threshold="equidistant")
    """
    if not isinstance(family, str) or not family:
        raise ValueError("family must be a non-empty string")
    aux: list[tuple[str, str]] = []
    options: list[tuple[str, Any]] = []
    for key, value in links_and_options.items():
        if value is None:
            continue
        if key.startswith("link_"):
            aux.append((key[len("link_"):], value))
        else:
            options.append((key, value))
    return Family(
        family=family.lower(),
        link=link,
        aux_links=tuple(aux),
        options=tuple(options),
    )


def gaussian(link: str | None = None, link_sigma: str | None = None) -> Family:
    return brmsfamily("gaussian", link, link_sigma=link_sigma)


def student(
    link: str | None = None, link_sigma: str | None = None, link_nu: str | None = None
) -> Family:
    return brmsfamily("student", link, link_sigma=link_sigma, link_nu=link_nu)


def skew_normal(
    link: str | None = None,
    link_sigma: str | None = None,
    link_alpha: str | None = None,
) -> Family:
    return brmsfamily("skew_normal", link, link_sigma=link_sigma, link_alpha=link_alpha)


def binomial(link: str | None = None) -> Family:
    """Binomial family; the number of trials is given with ``y | trials(n) ~ ...``."""
    return brmsfamily("binomial", link)


def bernoulli(link: str | None = None) -> Family:
    return brmsfamily("bernoulli", link)


def beta_binomial(link: str | None = None, link_phi: str | None = None) -> Family:
    return brmsfamily("beta_binomial", link, link_phi=link_phi)


def Beta(link: str | None = None, link_phi: str | None = None) -> Family:
    """Beta family (capitalized as in brms, to not shadow the beta function)."""
    return brmsfamily("beta", link, link_phi=link_phi)


def poisson(link: str | None = None) -> Family:
    return brmsfamily("poisson", link)


def negbinomial(link: str | None = None, link_shape: str | None = None) -> Family:
    return brmsfamily("negbinomial", link, link_shape=link_shape)


def geometric(link: str | None = None) -> Family:
    return brmsfamily("geometric", link)


def Gamma(link: str | None = None, link_shape: str | None = None) -> Family:
    return brmsfamily("gamma", link, link_shape=link_shape)


def lognormal(link: str | None = None, link_sigma: str | None = None) -> Family:
    """Log-normal family, e.g. for survival times with ``time | cens(censored)``."""
    return brmsfamily("lognormal", link, link_sigma=link_sigma)


def shifted_lognormal(
    link: str | None = None, link_sigma: str | None = None, link_ndt: str | None = None
) -> Family:
    return brmsfamily("shifted_lognormal", link, link_sigma=link_sigma, link_ndt=link_ndt)


def exponential(link: str | None = None) -> Family:
    return brmsfamily("exponential", link)


def weibull(link: str | None = None, link_shape: str | None = None) -> Family:
    return brmsfamily("weibull", link, link_shape=link_shape)


def frechet(link: str | None = None, link_nu: str | None = None) -> Family:
    return brmsfamily("frechet", link, link_nu=link_nu)


def gen_extreme_value(
    link: str | None = None, link_sigma: str | None = None, link_xi: str | None = None
) -> Family:
    return brmsfamily("gen_extreme_value", link, link_sigma=link_sigma, link_xi=link_xi)


def exgaussian(
    link: str | None = None, link_sigma: str | None = None, link_beta: str | None = None
) -> Family:
    return brmsfamily("exgaussian", link, link_sigma=link_sigma, link_beta=link_beta)


def wiener(
    link: str | None = None,
    link_bs: str | None = None,
    link_ndt: str | None = None,
    link_bias: str | None = None,
) -> Family:
    """
    Wiener diffusion model family.

    The response is the reaction time with the decision given through
    ``dec()``, e.g. ``bf("q | dec(resp) ~ x")``.
    """
    return brmsfamily(
        "wiener", link, link_bs=link_bs, link_ndt=link_ndt, link_bias=link_bias
    )


def von_mises(link: str | None = None, link_kappa: str | None = None) -> Family:
    return brmsfamily("von_mises", link, link_kappa=link_kappa)


def asym_laplace(
    link: str | None = None,
    link_sigma: str | None = None,
    link_quantile: str | None = None,
) -> Family:
    return brmsfamily(
        "asym_laplace", link, link_sigma=link_sigma, link_quantile=link_quantile
    )


def categorical(link: str | None = None, refcat: str | None = None) -> Family:
    return brmsfamily("categorical", link, refcat=refcat)


def multinomial(link: str | None = None, refcat: str | None = None) -> Family:
    return brmsfamily("multinomial", link, refcat=refcat)


def dirichlet(
    link: str | None = None, link_phi: str | None = None, refcat: str | None = None
) -> Family:
    return brmsfamily("dirichlet", link, link_phi=link_phi, refcat=refcat)


def cumulative(
    link: str | None = None, link_disc: str | None = None, threshold: str | None = None
) -> Family:
    """Cumulative ordinal family. ``threshold`` is "flexible", "equidistant" or "sum_to_zero"."""
    return brmsfamily("cumulative", link, link_disc=link_disc, threshold=threshold)


def sratio(
    link: str | None = None, link_disc: str | None = None, threshold: str | None = None
) -> Family:
    """Stopping-ratio ordinal family; supports category specific effects via ``cs()``."""
    return brmsfamily("sratio", link, link_disc=link_disc, threshold=threshold)


def cratio(
    link: str | None = None, link_disc: str | None = None, threshold: str | None = None
) -> Family:
    return brmsfamily("cratio", link, link_disc=link_disc, threshold=threshold)


def acat(
    link: str | None = None, link_disc: str | None = None, threshold: str | None = None
) -> Family:
    return brmsfamily("acat", link, link_disc=link_disc, threshold=threshold)


def hurdle_poisson(link: str | None = None, link_hu: str | None = None) -> Family:
    return brmsfamily("hurdle_poisson", link, link_hu=link_hu)


def hurdle_negbinomial(
    link: str | None = None, link_shape: str | None = None, link_hu: str | None = None
) -> Family:
    return brmsfamily("hurdle_negbinomial", link, link_shape=link_shape, link_hu=link_hu)


def hurdle_gamma(
    link: str | None = None, link_shape: str | None = None, link_hu: str | None = None
) -> Family:
    return brmsfamily("hurdle_gamma", link, link_shape=link_shape, link_hu=link_hu)


def hurdle_lognormal(
    link: str | None = None, link_sigma: str | None = None, link_hu: str | None = None
) -> Family:
    return brmsfamily("hurdle_lognormal", link, link_sigma=link_sigma, link_hu=link_hu)


def zero_inflated_poisson(link: str | None = None, link_zi: str | None = None) -> Family:
    return brmsfamily("zero_inflated_poisson", link, link_zi=link_zi)


def zero_inflated_negbinomial(
    link: str | None = None, link_shape: str | None = None, link_zi: str | None = None
) -> Family:
    return brmsfamily(
        "zero_inflated_negbinomial", link, link_shape=link_shape, link_zi=link_zi
    )


def zero_inflated_binomial(link: str | None = None, link_zi: str | None = None) -> Family:
    return brmsfamily("zero_inflated_binomial", link, link_zi=link_zi)


def zero_inflated_beta(
    link: str | None = None, link_phi: str | None = None, link_zi: str | None = None
) -> Family:
    return brmsfamily("zero_inflated_beta", link, link_phi=link_phi, link_zi=link_zi)


def zero_one_inflated_beta(
    link: str | None = None,
    link_phi: str | None = None,
    link_zoi: str | None = None,
    link_coi: str | None = None,
) -> Family:
    return brmsfamily(
        "zero_one_inflated_beta",
        link,
        link_phi=link_phi,
        link_zoi=link_zoi,
        link_coi=link_coi,
    )


def mixture(
    *families: Family | str,
    nmix: int | list[int] = 1,
    order: str | bool | None = None,
) -> Family:
    """
    Finite mixture family.

    Parameters
    ----------
    *families : Family or str
        Component families.
    nmix : int or list of int, default 1
        How often each component is repeated; a single int applies to
        every family, so ``mixture(gaussian(), nmix=3)`` has three gaussian
        components.
    order : str or bool, optional
        Ordering constraint ("mu", "none", True, False) used to avoid label
        switching.

    Returns
    -------
    Family
        A family with ``family == "mixture"`` and one entry per component in
        ``components``.

    Raises
    ------
    ValueError
        If no family is given or ``nmix`` does not match the families.
    """
    if not families:
        raise ValueError("mixture() requires at least one component family")

    if isinstance(nmix, int):
        counts = [nmix] * len(families)
    else:
        counts = list(nmix)
        if len(counts) != len(families):
            raise ValueError(
                f"nmix must have one entry per family ({len(families)}), got {len(counts)}"
            )
    if any(int(n) < 1 for n in counts):
        raise ValueError("nmix must be positive")

    components: list[Family] = []
    for fam, n in zip(families, counts):
        if isinstance(fam, str):
            fam = brmsfamily(fam)
        if fam.is_mixture:
            raise ValueError("Mixture components cannot be mixtures themselves")
        components.extend([fam] * int(n))

    if len(components) < 2:
        raise ValueError("A mixture needs at least two components")

    return Family(family="mixture", components=tuple(components), order=order)


def _family_to_r(fam: Family | str):
    """Build the R family object for a `Family` (or a family name)."""
    from brmskit.helpers.conversion import kwargs_r, py_to_r

    if isinstance(fam, str):
        fam = brmsfamily(fam)

    if fam.is_mixture:
        components = [_family_to_r(c) for c in fam.components]
        return call_r("brms::mixture", *components, **kwargs_r({"order": fam.order}))

    kwargs: dict[str, Any] = {"link": fam.link}
    for dpar, link in fam.aux_links:
        kwargs[f"link_{dpar}"] = link
    kwargs.update(dict(fam.options))
    return call_r("brms::brmsfamily", py_to_r(fam.family), **kwargs_r(kwargs))


def _family_from_r(r_family) -> Family:
    import rpy2.robjects as ro

    name = str(r_family.rx2("family")[0])
    if name == "mixture":
        mix = r_family.rx2("mix")
        return Family(
            family="mixture",
            components=tuple(_family_from_r(m) for m in mix),
        )
    link = r_family.rx2("link")
    return Family(family=name, link=None if link is ro.NULL else str(link[0]))


def family(fit: FitResult) -> Family:
    """
    Family of a fitted model, as ``brms::family()`` reports it.

    Examples
    --------
    >>> fit4 = update(fit1, family=student())
    >>> family(fit4).family
    'student'
    """
    return _family_from_r(call_r("stats::family", fit.r))
