"""
Behaviour of the prediction functions beyond the InferenceData layout checked
in test_arviz_shapes.py:

- the string formula + gaussian family path through ``brms.fit``
- posterior_predict includes observation noise, posterior_epred does not
- Poisson posterior_predict draws are integers
- summarised predict/fitted arrays
"""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest


@pytest.fixture(scope="module")
def fit_gaussian():
    from brmskit import brms

    rng = np.random.default_rng(42)
    data = pd.DataFrame({"x1": rng.normal(size=50)})
    data["y"] = 10 + data["x1"] + rng.normal(0, 2, size=50)

    return brms.fit(
        formula="y ~ x1",
        data=data,
        family="gaussian",
        iter=300,
        warmup=150,
        chains=2,
        seed=123,
        silent=2,
        refresh=0,
    )


@pytest.mark.requires_brms
@pytest.mark.slow
class TestPredictionBehavior:

    def test_string_formula_gaussian_smoke(
        self, fit_gaussian, sample_dataframe: pd.DataFrame
    ) -> None:
        import arviz as az

        from brmskit import brms

        assert isinstance(fit_gaussian.idata, az.InferenceData)

        assert brms.posterior_epred(fit_gaussian, newdata=sample_dataframe).idata is not None
        assert brms.posterior_predict(fit_gaussian, newdata=sample_dataframe).idata is not None
        assert brms.posterior_linpred(fit_gaussian, newdata=sample_dataframe).idata is not None
        assert brms.log_lik(fit_gaussian, newdata=sample_dataframe).idata is not None

    def test_epred_vs_predict_difference(
        self, fit_gaussian, sample_dataframe: pd.DataFrame
    ) -> None:
        """posterior_predict adds residual noise to the expected values."""
        from brmskit import brms

        epred = brms.posterior_epred(fit_gaussian, newdata=sample_dataframe)
        predict = brms.posterior_predict(fit_gaussian, newdata=sample_dataframe)

        epred_std = float(np.std(epred.idata.predictions["y_mean"].values))
        predict_std = float(np.std(predict.idata.predictions["y"].values))

        assert predict_std > epred_std, (
            f"Predictions (std={predict_std:.3f}) should have higher variance "
            f"than expected values (std={epred_std:.3f})"
        )

    def test_summarised_predict_and_fitted(
        self, fit_gaussian, sample_dataframe: pd.DataFrame
    ) -> None:
        from brmskit import brms

        pred = brms.predict(fit_gaussian, newdata=sample_dataframe)
        fit = brms.fitted(fit_gaussian, newdata=sample_dataframe)

        assert pred.shape == (len(sample_dataframe), 4)
        assert fit.shape == (len(sample_dataframe), 4)
        # wider intervals with residual noise
        assert np.all(pred[:, 3] - pred[:, 2] > fit[:, 3] - fit[:, 2])

    def test_predict_draws(self, fit_gaussian) -> None:
        from brmskit import brms

        draws = brms.predict(fit_gaussian, summary=False, ndraws=20)

        assert draws.shape == (20, brms.nobs(fit_gaussian))

    def test_fitted_linear_scale(self, fit_gaussian) -> None:
        from brmskit import brms

        np.testing.assert_allclose(
            brms.fitted(fit_gaussian, scale="linear")[:, 0],
            brms.fitted(fit_gaussian)[:, 0],
        )


@pytest.mark.requires_brms
@pytest.mark.slow
class TestPoissonPredictions:

    def test_poisson_predictions_are_integerish(
        self, poisson_data: pd.DataFrame
    ) -> None:
        from brmskit import brms

        model = brms.fit(
            formula="count ~ predictor",
            data=poisson_data,
            family="poisson",
            iter=200,
            warmup=100,
            chains=2,
            seed=123,
            silent=2,
            refresh=0,
        )

        predict = brms.posterior_predict(model, newdata=poisson_data)
        predict_vals = predict.idata.predictions["count"].values

        assert np.any(predict_vals > 0)
        assert np.allclose(predict_vals, np.round(predict_vals), atol=1e-10)
