"""
Tests of the result containers and their plots, built from synthetic data.
"""
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import pytest


@pytest.fixture(autouse=True)
def _close_figures():
    yield
    plt.close("all")


def _estimates(criterion="loo", ic=100.0):
    ic_name = {"loo": "looic", "waic": "waic", "kfold": "kfoldic"}[criterion]
    return pd.DataFrame(
        {"Estimate": [-ic / 2, 3.0, ic], "SE": [4.0, 0.5, 8.0]},
        index=[f"elpd_{criterion}", f"p_{criterion}", ic_name],
    )


class TestLooResult:
    def test_properties(self):
        from brmskit.types import LooResult

        res = LooResult(criterion="loo", estimates=_estimates(ic=100.0))

        assert res.elpd == -50.0
        assert res.ic == 100.0
        assert res.se_ic == 8.0

    def test_kfoldic(self):
        from brmskit.types import KFoldResult

        res = KFoldResult(criterion="kfold", estimates=_estimates("kfold", ic=42.0))
        assert res.kfoldic == 42.0

    def test_kfoldic_only_for_kfold(self):
        from brmskit.types import LooResult

        res = LooResult(criterion="waic", estimates=_estimates("waic"))
        with pytest.raises(AttributeError, match="K-fold"):
            res.kfoldic

    def test_str(self):
        from brmskit.types import LooResult

        res = LooResult(criterion="waic", estimates=_estimates("waic"), model_name="fit1")
        text = str(res)

        assert text.startswith("Computed from WAIC for model 'fit1'")
        assert "elpd_waic" in text

    def test_ic_comparison_mapping(self):
        from brmskit.types import ICComparison, LooResult

        a = LooResult(criterion="loo", estimates=_estimates(), model_name="a")
        b = LooResult(criterion="loo", estimates=_estimates(), model_name="b")
        cmp = ICComparison(results={"a": a, "b": b}, ic_diffs=pd.DataFrame())

        assert len(cmp) == 2
        assert cmp["b"] is b

    def test_result_types_on_facade(self):
        from brmskit import brms
        from brmskit.types import ICComparison, LooResult

        assert brms.ICComparison is ICComparison
        assert brms.LooResult is LooResult


class TestSummaryResult:
    def test_str_sections(self):
        from brmskit.types import SummaryResult

        fixed = pd.DataFrame(
            {"Estimate": [1.5, -0.2], "Est.Error": [0.1, 0.05]},
            index=["Intercept", "zAge"],
        )
        random = {
            "patient": pd.DataFrame({"Estimate": [0.5]}, index=["sd(Intercept)"]),
        }
        summary = SummaryResult(
            formula="count ~ zAge + (1 | patient)",
            data_name="epilepsy",
            nobs=236,
            ngrps={"patient": 59},
            algorithm="sampling",
            sampler="NUTS",
            total_ndraws=4000,
            chains=4,
            iter=2000,
            warmup=1000,
            has_rhat=True,
            fixed=fixed,
            random=random,
        )
        text = str(summary)

        assert "Formula: count ~ zAge + (1 | patient)" in text
        assert "Number of observations: 236" in text
        assert "4 chains, each with iter = 2000; warmup = 1000; thin = 1;" in text
        assert "~patient (Number of levels: 59)" in text
        assert "Population-Level Effects:" in text
        assert "zAge" in text
        assert "Family Specific Parameters:" not in text
        assert "Rhat" in text
        assert repr(summary) == text


class TestHypothesisResult:
    def test_plot(self):
        from brmskit.types import HypothesisResult

        rng = np.random.default_rng(1)
        res = HypothesisResult(
            hypothesis=pd.DataFrame({"Hypothesis": ["(Trt) > 0", "(zAge) > 0"]}),
            samples=pd.DataFrame({"H1": rng.normal(size=200), "H2": rng.normal(size=200)}),
            prior_samples=pd.DataFrame({"H1": rng.normal(0, 3, size=200)}),
        )

        axes = res.plot()

        assert len(axes) == 2
        assert axes[0].get_title() == "(Trt) > 0"
        assert str(res).startswith("Hypothesis Tests:")


class TestConditionalEffects:
    """Mapping behaviour and plotting of conditional effects."""

    @pytest.fixture
    def effects(self):
        from brmskit.types import ConditionalEffects

        x = np.linspace(-2, 2, 20)
        numeric = pd.DataFrame(
            {
                "zAge": x,
                "effect1__": x,
                "estimate__": 1 + 0.5 * x,
                "lower__": 0.5 + 0.5 * x,
                "upper__": 1.5 + 0.5 * x,
            }
        )
        categorical = pd.DataFrame(
            {
                "Trt": pd.Categorical(["0", "1"]),
                "effect1__": pd.Categorical(["0", "1"]),
                "estimate__": [2.0, 1.5],
                "lower__": [1.8, 1.2],
                "upper__": [2.2, 1.8],
            }
        )
        interaction = pd.DataFrame(
            {
                "effect1__": np.tile(x, 2),
                "effect2__": pd.Categorical(["0"] * 20 + ["1"] * 20),
                "estimate__": np.concatenate([x, -x]),
                "lower__": np.concatenate([x, -x]) - 0.3,
                "upper__": np.concatenate([x, -x]) + 0.3,
            }
        )
        points = {
            "zAge": pd.DataFrame({"effect1__": [-1.0, 0.0, 1.0], "resp__": [1, 3, 2]}),
            "Trt": pd.DataFrame(
                {"effect1__": pd.Categorical(["1", "0"]), "resp__": [4, 5]}
            ),
        }
        return ConditionalEffects(
            {"zAge": numeric, "Trt": categorical, "zAge:Trt": interaction},
            points=points,
        )

    def test_mapping(self, effects):
        assert len(effects) == 3
        assert list(effects) == ["zAge", "Trt", "zAge:Trt"]
        assert "estimate__" in effects["zAge"].columns
        assert "zAge:Trt" in repr(effects)

    def test_plot_returns_axes(self, effects):
        axes = effects.plot(plot=False)

        assert len(axes) == 3
        assert [ax.get_title() for ax in axes] == ["zAge", "Trt", "zAge:Trt"]
        assert axes[0].get_xlabel() == "zAge"
        assert len(axes[0].lines) == 1

    def test_categorical_ticks(self, effects):
        axes = effects.plot(plot=False)
        labels = [t.get_text() for t in axes[1].get_xticklabels()]
        assert labels == ["0", "1"]

    def test_interaction_lines(self, effects):
        axes = effects.plot(plot=False)

        assert len(axes[2].lines) == 2
        assert axes[2].get_legend() is not None

    def test_points_overlay(self, effects):
        axes = effects.plot(points=True, plot=False)

        assert len(axes[0].collections) >= 2, "band plus points expected"

    @pytest.fixture
    def grid(self):
        g1, g2 = np.meshgrid(np.linspace(0, 1, 10), np.linspace(0, 1, 10))
        return pd.DataFrame(
            {
                "effect1__": g1.ravel(),
                "effect2__": g2.ravel(),
                "estimate__": (g1 * g2).ravel(),
            }
        )

    def test_surface(self, grid):
        from brmskit.types import ConditionalEffects

        axes = ConditionalEffects({"x1:x2": grid}, surface=True).plot(plot=False)

        assert axes[0].get_ylabel() == "x2"
        assert len(axes[0].figure.axes) == 2, "contour plus colorbar expected"

    def test_numeric_interaction_without_surface(self, grid):
        from brmskit.types import ConditionalEffects

        axes = ConditionalEffects({"x1:x2": grid}).plot(plot=False)

        assert len(axes[0].lines) == 10
        assert len(axes[0].figure.axes) == 1

    def test_one_panel_per_condition(self):
        from brmskit.types import ConditionalEffects

        x = np.linspace(0, 1, 5)
        df = pd.DataFrame(
            {
                "effect1__": np.tile(x, 2),
                "estimate__": np.concatenate([x, 2 * x]),
                "cond__": pd.Categorical(["zAge = -1"] * 5 + ["zAge = 1"] * 5),
            }
        )
        points = {
            "zBase": pd.DataFrame(
                {
                    "effect1__": [0.2, 0.4, 0.6],
                    "resp__": [1, 2, 3],
                    "cond__": pd.Categorical(["zAge = -1", "zAge = 1", "zAge = 1"]),
                }
            )
        }
        axes = ConditionalEffects({"zBase": df}, points=points).plot(points=True, plot=False)

        assert len(axes) == 2
        assert [ax.get_title() for ax in axes] == ["zBase | zAge = -1", "zBase | zAge = 1"]
        assert axes[0].figure is axes[1].figure
        for ax in axes:
            assert len(ax.lines) == 1
            assert len(ax.lines[0].get_xdata()) == 5
        np.testing.assert_allclose(axes[1].lines[0].get_ydata(), 2 * x)
        assert len(axes[0].collections[-1].get_offsets()) == 1
        assert len(axes[1].collections[-1].get_offsets()) == 2
