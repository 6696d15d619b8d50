"""
ArviZ InferenceData groups and shapes produced by brmskit.

- observation dim name: obs_id
- shapes: (chain=C, draw=D, obs_id=N or M)
- in-sample and out-of-sample calls use different groups
- variable names: <response>, <response>_mean, <response>_linpred
- out-of-sample obs_id comes from the index of newdata
"""

from __future__ import annotations

import arviz as az
import numpy as np
import pandas as pd
import pytest
import xarray as xr

from brmskit.types.brms_results import FitResult

C = 2
ITER = 200
WARMUP = 100
D = ITER - WARMUP

SEED = 1234

# out-of-sample row count
M = 25


# -------------------------
# Helper assertions
# -------------------------


def _assert_groups_exact(idata: az.InferenceData, expected: set[str]) -> None:
    assert set(idata.groups()) == expected, (
        f"groups={idata.groups()!r}, expected={sorted(expected)!r}"
    )


def _assert_da_dims_and_shape(
    da: xr.DataArray, *, dims: tuple[str, ...], shape: tuple[int, ...]
) -> None:
    assert tuple(da.dims) == dims, f"dims={da.dims!r}, expected={dims!r}"
    assert tuple(da.shape) == shape, f"shape={da.shape!r}, expected={shape!r}"


def _assert_obs_id_coords_exact(
    da_or_ds: xr.DataArray | xr.Dataset, expected_obs_id: np.ndarray
) -> None:
    actual = np.asarray(da_or_ds.coords["obs_id"].values)
    np.testing.assert_array_equal(actual, expected_obs_id)


def _assert_dataset_has_vars(ds: xr.Dataset, expected_vars: set[str]) -> None:
    missing = expected_vars.difference(set(ds.data_vars))
    assert not missing, f"missing vars {sorted(missing)!r}, got {sorted(ds.data_vars)!r}"


def _assert_dataset_lacks_vars(ds: xr.Dataset, forbidden_vars: set[str]) -> None:
    present = forbidden_vars.intersection(set(ds.data_vars))
    assert not present, f"forbidden vars present {sorted(present)!r}"


# -------------------------
# Data + model fixtures
# -------------------------


@pytest.fixture(scope="module")
def epilepsy_df() -> pd.DataFrame:
    from brmskit import brms

    return brms.get_brms_data("epilepsy").copy()


@pytest.fixture(scope="module")
def newdata_df(epilepsy_df: pd.DataFrame) -> pd.DataFrame:
    newdata = epilepsy_df.sample(M, replace=True, random_state=SEED).copy()
    newdata.index = [f"pred{i}" for i in range(len(newdata))]
    return newdata


@pytest.fixture(scope="module")
def fit_uni(epilepsy_df: pd.DataFrame) -> FitResult:
    from brmskit import brms

    return brms.brm(
        brms.bf("count ~ zAge + zBase * Trt + (1|patient)") + brms.poisson(),
        data=epilepsy_df,
        chains=C,
        iter=ITER,
        warmup=WARMUP,
        seed=SEED,
        cores=2,
        refresh=0,
        silent=2,
    )


@pytest.fixture(scope="module")
def fit_multi(epilepsy_df: pd.DataFrame) -> FitResult:
    from brmskit import brms

    formula = (
        (brms.bf("count ~ zAge + zBase * Trt + visit + (1 + visit | patient)") + brms.poisson())
        + (brms.bf("Base ~ zAge + Trt + (1 | patient)") + brms.poisson())
        + brms.set_rescor(False)
    )
    return brms.brm(
        formula,
        data=epilepsy_df,
        chains=C,
        iter=ITER,
        warmup=WARMUP,
        seed=SEED,
        cores=2,
        refresh=0,
        silent=2,
    )


def _train_obs_id(fit: FitResult) -> np.ndarray:
    return np.asarray(fit.idata.observed_data.coords["obs_id"].values)


# ------------------------------------
# brm() InferenceData
# ------------------------------------


@pytest.mark.requires_brms
@pytest.mark.slow
def test_brm_idata_groups_univariate(fit_uni: FitResult, epilepsy_df: pd.DataFrame) -> None:
    idata = fit_uni.idata
    _assert_groups_exact(
        idata,
        {"posterior", "posterior_predictive", "log_likelihood", "observed_data", "constant_data"},
    )
    n = len(epilepsy_df)
    obs_id = _train_obs_id(fit_uni)
    assert obs_id.shape == (n,)

    _assert_da_dims_and_shape(idata.observed_data["count"], dims=("obs_id",), shape=(n,))
    for group in (idata.posterior_predictive, idata.log_likelihood):
        _assert_da_dims_and_shape(
            group["count"], dims=("chain", "draw", "obs_id"), shape=(C, D, n)
        )
        _assert_obs_id_coords_exact(group["count"], obs_id)

    _assert_dataset_has_vars(idata.constant_data, {"zAge", "zBase", "Trt", "patient"})
    _assert_dataset_lacks_vars(idata.constant_data, {"count"})
    assert idata.posterior.sizes["chain"] == C
    assert idata.posterior.sizes["draw"] == D


@pytest.mark.requires_brms
@pytest.mark.slow
def test_brm_idata_groups_multivariate(fit_multi: FitResult, epilepsy_df: pd.DataFrame) -> None:
    idata = fit_multi.idata
    n = len(epilepsy_df)

    _assert_dataset_has_vars(idata.observed_data, {"count", "Base"})
    _assert_dataset_has_vars(idata.posterior_predictive, {"count", "Base"})
    _assert_dataset_has_vars(idata.log_likelihood, {"count", "Base"})
    for resp in ("count", "Base"):
        _assert_da_dims_and_shape(
            idata.posterior_predictive[resp],
            dims=("chain", "draw", "obs_id"),
            shape=(C, D, n),
        )
    _assert_dataset_lacks_vars(idata.constant_data, {"count", "Base"})


# ----------------------------------------
# Univariate prediction functions
# ----------------------------------------


@pytest.mark.requires_brms
@pytest.mark.slow
@pytest.mark.parametrize("function,group,var", [
    ("posterior_predict", "posterior_predictive", "count"),
    ("posterior_epred", "posterior", "count_mean"),
    ("posterior_linpred", "posterior", "count_linpred"),
    ("log_lik", "log_likelihood", "count"),
])
def test_univariate_insample(fit_uni: FitResult, epilepsy_df, function, group, var) -> None:
    from brmskit import brms

    res = getattr(brms, function)(fit_uni)
    _assert_groups_exact(res.idata, {group})

    da = res.idata[group][var]
    _assert_da_dims_and_shape(da, dims=("chain", "draw", "obs_id"), shape=(C, D, len(epilepsy_df)))
    _assert_obs_id_coords_exact(da, _train_obs_id(fit_uni))
    assert res.r is not None


@pytest.mark.requires_brms
@pytest.mark.slow
@pytest.mark.parametrize("function,var", [
    ("posterior_predict", "count"),
    ("posterior_epred", "count_mean"),
    ("posterior_linpred", "count_linpred"),
])
def test_univariate_newdata(fit_uni: FitResult, newdata_df: pd.DataFrame, function, var) -> None:
    from brmskit import brms

    res = getattr(brms, function)(fit_uni, newdata=newdata_df)
    idata = res.idata
    _assert_groups_exact(idata, {"predictions", "predictions_constant_data"})

    pred_obs_id = np.asarray(newdata_df.index.to_numpy())
    _assert_da_dims_and_shape(
        idata.predictions[var], dims=("chain", "draw", "obs_id"), shape=(C, D, M)
    )
    _assert_obs_id_coords_exact(idata.predictions[var], pred_obs_id)

    _assert_dataset_has_vars(idata.predictions_constant_data, {"zAge", "zBase", "Trt", "patient"})
    _assert_dataset_lacks_vars(idata.predictions_constant_data, {"count"})
    _assert_obs_id_coords_exact(idata.predictions_constant_data, pred_obs_id)


@pytest.mark.requires_brms
@pytest.mark.slow
def test_univariate_log_lik_newdata(fit_uni: FitResult, newdata_df: pd.DataFrame) -> None:
    from brmskit import brms

    res = brms.log_lik(fit_uni, newdata=newdata_df)
    _assert_groups_exact(res.idata, {"log_likelihood", "predictions_constant_data"})
    _assert_da_dims_and_shape(
        res.idata.log_likelihood["count"], dims=("chain", "draw", "obs_id"), shape=(C, D, M)
    )


@pytest.mark.requires_brms
@pytest.mark.slow
def test_univariate_log_lik_newdata_requires_response_column(
    fit_uni: FitResult, newdata_df: pd.DataFrame
) -> None:
    from brmskit import BrmsError, brms

    with pytest.raises(BrmsError):
        brms.log_lik(fit_uni, newdata=newdata_df.drop(columns=["count"]))


@pytest.mark.requires_brms
@pytest.mark.slow
def test_ndraws_subset_is_single_chain(fit_uni: FitResult, epilepsy_df) -> None:
    """A subset of draws cannot be mapped back to chains"""
    from brmskit import brms

    res = brms.posterior_epred(fit_uni, ndraws=10)
    _assert_da_dims_and_shape(
        res.idata.posterior["count_mean"],
        dims=("chain", "draw", "obs_id"),
        shape=(1, 10, len(epilepsy_df)),
    )


# -----------------------------------------
# Multivariate prediction functions
# -----------------------------------------


@pytest.mark.requires_brms
@pytest.mark.slow
def test_multivariate_posterior_epred_insample_has_both_means(
    fit_multi: FitResult, epilepsy_df: pd.DataFrame
) -> None:
    from brmskit import brms

    res = brms.posterior_epred(fit_multi)
    _assert_dataset_has_vars(res.idata.posterior, {"count_mean", "Base_mean"})
    for v in ("count_mean", "Base_mean"):
        _assert_da_dims_and_shape(
            res.idata.posterior[v],
            dims=("chain", "draw", "obs_id"),
            shape=(C, D, len(epilepsy_df)),
        )
    assert set(res.r) == {"count", "Base"}


@pytest.mark.requires_brms
@pytest.mark.slow
def test_multivariate_posterior_linpred_newdata_has_both_linpreds(
    fit_multi: FitResult, newdata_df: pd.DataFrame
) -> None:
    from brmskit import brms

    res = brms.posterior_linpred(fit_multi, newdata=newdata_df)
    idata = res.idata
    _assert_groups_exact(idata, {"predictions", "predictions_constant_data"})

    _assert_dataset_has_vars(idata.predictions, {"count_linpred", "Base_linpred"})
    _assert_dataset_lacks_vars(idata.predictions_constant_data, {"count", "Base"})


@pytest.mark.requires_brms
@pytest.mark.slow
def test_multivariate_log_lik_newdata_requires_both_response_columns(
    fit_multi: FitResult, newdata_df: pd.DataFrame
) -> None:
    from brmskit import BrmsError, brms

    with pytest.raises(BrmsError):
        brms.log_lik(fit_multi, newdata=newdata_df.drop(columns=["Base"]))
