"""
Plots for fitted models: posterior predictive checks, conditional effects
and hypotheses.

All functions return matplotlib ``Axes`` and leave saving or showing the
figures to the caller (unless ``plot=True`` is passed where supported).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import arviz as az
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from brmskit.helpers.log import log_debug, log_warning

if TYPE_CHECKING:
    from matplotlib.axes import Axes

    from ..types.brms_results import ConditionalEffects, FitResult, HypothesisResult

DEFAULT_FIGSIZE = (6, 4)


def pp_check(
    model: FitResult,
    resp: str | None = None,
    ndraws: int | None = None,
    kind: str = "kde",
    ax: Any = None,
    **kwargs: Any,
):
    """
    Posterior predictive check: observed data against replicated data.

    Uses ``arviz.plot_ppc`` on the model's InferenceData.

    Parameters
    ----------
    model : FitResult
        Fitted model (with ``posterior_predictive`` and ``observed_data``)
    resp : str, optional
        Response to plot in multivariate models; all responses by default
    ndraws : int, optional
        Number of replicated datasets to draw
    kind : str, default "kde"
        "kde", "cumulative" or "scatter"
    ax : matplotlib Axes, optional
    **kwargs
        Passed to ``arviz.plot_ppc``

    Returns
    -------
    matplotlib Axes or array of Axes

    Examples
    --------
    >>> ax = pp_check(fit1, ndraws=50)
    """
    idata = model.idata
    groups = idata.groups()
    if "posterior_predictive" not in groups or "observed_data" not in groups:
        raise ValueError(
            "pp_check() needs posterior_predictive and observed_data groups; "
            "was the model fitted with sample=False?"
        )
    var_names = [resp] if resp is not None else None
    log_debug(f"pp_check for {var_names or 'all responses'}")
    return az.plot_ppc(
        idata,
        kind=kind,
        var_names=var_names,
        num_pp_samples=ndraws,
        ax=ax,
        **kwargs,
    )


def _effect_columns(name: str, df: pd.DataFrame) -> tuple[str, str | None]:
    parts = name.split(":")
    x = "effect1__" if "effect1__" in df.columns else parts[0]
    second = None
    if "effect2__" in df.columns:
        second = "effect2__"
    elif len(parts) > 1 and parts[1] in df.columns:
        second = parts[1]
    return x, second


def _is_numeric(values: pd.Series) -> bool:
    return pd.api.types.is_numeric_dtype(values) and not isinstance(
        values.dtype, pd.CategoricalDtype
    )


def _plot_surface(ax, df: pd.DataFrame, x: str, y: str):
    grid = df.pivot_table(index=y, columns=x, values="estimate__")
    cs = ax.contourf(grid.columns.to_numpy(), grid.index.to_numpy(), grid.to_numpy())
    ax.figure.colorbar(cs, ax=ax, label="estimate")


def _plot_line(ax, df: pd.DataFrame, x: str, label: str | None = None):
    df = df.sort_values(x)
    (line,) = ax.plot(df[x], df["estimate__"], label=label)
    if "lower__" in df.columns and "upper__" in df.columns:
        ax.fill_between(
            df[x], df["lower__"], df["upper__"], alpha=0.2, color=line.get_color()
        )


def _plot_categories(ax, df: pd.DataFrame, x: str, offset: float = 0.0, label=None):
    cats = pd.Categorical(df[x])
    pos = cats.codes + offset
    yerr = None
    if "lower__" in df.columns and "upper__" in df.columns:
        yerr = np.vstack(
            [df["estimate__"] - df["lower__"], df["upper__"] - df["estimate__"]]
        )
    ax.errorbar(pos, df["estimate__"], yerr=yerr, fmt="o", capsize=3, label=label)
    ax.set_xticks(range(len(cats.categories)))
    ax.set_xticklabels([str(c) for c in cats.categories])


def _draw_effect(
    ax,
    name: str,
    df: pd.DataFrame,
    pts: pd.DataFrame | None,
    effects: ConditionalEffects,
    points: bool,
    rug: bool,
):
    x, second = _effect_columns(name, df)

    surface = (
        effects.surface
        and second is not None
        and _is_numeric(df[x])
        and _is_numeric(df[second])
    )
    if surface:
        _plot_surface(ax, df, x, second)
        ax.set_ylabel(name.split(":")[1] if ":" in name else second)
    elif second is not None:
        levels = list(pd.unique(df[second]))
        width = 0.6 / max(len(levels), 1)
        for i, level in enumerate(levels):
            sub = df[df[second] == level]
            if _is_numeric(df[x]):
                _plot_line(ax, sub, x, label=str(level))
            else:
                offset = (i - (len(levels) - 1) / 2) * width
                _plot_categories(ax, sub, x, offset=offset, label=str(level))
        ax.legend(title=name.split(":")[1] if ":" in name else second)
    elif _is_numeric(df[x]):
        _plot_line(ax, df, x)
    else:
        _plot_categories(ax, df, x)

    if points and pts is not None and not pts.empty:
        px = pts["effect1__"] if "effect1__" in pts.columns else pts.iloc[:, 0]
        if _is_numeric(px):
            ax.scatter(px, pts["resp__"], s=8, color="black", alpha=0.4)
        else:
            categories = pd.Categorical(df[x]).categories
            codes = pd.Categorical(px, categories=categories).codes
            ax.scatter(codes, pts["resp__"], s=8, color="black", alpha=0.4)
    elif points and not effects.points:
        log_warning("No observed data available for points=True")

    has_rug = (
        rug
        and pts is not None
        and "effect1__" in pts.columns
        and _is_numeric(pts["effect1__"])
    )
    if has_rug:
        vals = pts["effect1__"].to_numpy()
        ax.scatter(
            vals, np.zeros_like(vals, dtype=float), marker="|", color="black",
            transform=ax.get_xaxis_transform(),
        )

    ax.set_xlabel(name.split(":")[0])
    if not ax.get_ylabel():
        ax.set_ylabel("estimate" if not effects.smooths else name)


def _split_conditions(df: pd.DataFrame, pts: pd.DataFrame | None):
    """Yield (condition, effect rows, point rows), one item per ``cond__`` level."""
    if "cond__" not in df.columns or df["cond__"].nunique() < 2:
        yield None, df, pts
        return
    for cond in pd.unique(df["cond__"]):
        sub_pts = pts
        if pts is not None and "cond__" in pts.columns:
            sub_pts = pts[pts["cond__"] == cond]
        yield cond, df[df["cond__"] == cond], sub_pts


def plot_conditional_effects(
    effects: ConditionalEffects,
    points: bool = False,
    rug: bool = False,
    ask: bool = False,
    plot: bool = True,
    figsize: tuple[float, float] = DEFAULT_FIGSIZE,
) -> list[Axes]:
    """
    One figure per conditional effect.

    Numeric predictors are drawn as a line with its credible band,
    categorical predictors as points with error bars. Interactions are drawn
    as one line per level of the second variable, or as a filled contour
    when the effects were computed with ``surface=True``. Effects computed
    for several ``conditions`` get one panel per condition.

    Parameters
    ----------
    effects : ConditionalEffects
        Result of `conditional_effects()` / `conditional_smooths()`
    points : bool, default False
        Overlay the observed data
    rug : bool, default False
        Add a rug of the observed predictor values
    ask : bool, default False
        With ``plot=True``, show the figures one at a time
    plot : bool, default True
        Show the figures with ``plt.show()``

    Returns
    -------
    list of matplotlib Axes
        One Axes per effect and condition
    """
    axes: list[Axes] = []
    for name, df in effects.items():
        panels = list(_split_conditions(df, effects.points.get(name)))
        fig, grid = plt.subplots(
            1,
            len(panels),
            figsize=(figsize[0] * len(panels), figsize[1]),
            squeeze=False,
        )
        for ax, (cond, sub, pts) in zip(grid[0], panels):
            _draw_effect(ax, name, sub, pts, effects, points, rug)
            ax.set_title(name if cond is None else f"{name} | {cond}")
            axes.append(ax)
        fig.tight_layout()

        if plot and ask:
            plt.show()

    if plot and not ask:
        plt.show()
    return axes


def plot_hypothesis(
    result: HypothesisResult,
    figsize: tuple[float, float] = DEFAULT_FIGSIZE,
    plot: bool = False,
) -> list[Axes]:
    """
    Posterior (and, if sampled, prior) density of each hypothesis.

    Returns one Axes per hypothesis.
    """
    axes: list[Axes] = []
    labels = list(result.hypothesis["Hypothesis"]) if "Hypothesis" in result.hypothesis else []
    for i, col in enumerate(result.samples.columns):
        fig, ax = plt.subplots(figsize=figsize)
        az.plot_kde(result.samples[col].to_numpy(dtype=float), ax=ax, label="Posterior")
        if result.prior_samples is not None and col in result.prior_samples.columns:
            az.plot_kde(
                result.prior_samples[col].to_numpy(dtype=float),
                ax=ax,
                label="Prior",
                plot_kwargs={"linestyle": "--"},
            )
        ax.set_title(labels[i] if i < len(labels) else col)
        ax.set_ylabel("Density")
        fig.tight_layout()
        axes.append(ax)
    if plot:
        plt.show()
    return axes
