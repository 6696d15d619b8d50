"""
Pytest configuration and shared fixtures for brmskit tests
"""

import logging
import os
from io import StringIO

import matplotlib
import numpy as np
import pandas as pd
import pytest

matplotlib.use("Agg")

os.environ["BRMSKIT_TEST"] = "1"


@pytest.fixture
def sample_dataframe():
    """
    Create a simple DataFrame for testing.

    Returns a small dataset with a continuous outcome and predictors.
    """
    np.random.seed(42)
    n = 50
    data = pd.DataFrame(
        {
            "y": np.random.normal(10, 2, n),
            "x1": np.random.normal(0, 1, n),
            "x2": np.random.choice(["A", "B"], n),
            "group": np.repeat(["G1", "G2"], n // 2),
        }
    )
    return data


@pytest.fixture
def poisson_data():
    """
    Create sample count data for Poisson regression testing.
    """
    np.random.seed(42)
    n = 40
    x = np.random.normal(0, 1, n)
    lambda_true = np.exp(1 + 0.5 * x)
    y = np.random.poisson(lambda_true)

    return pd.DataFrame({"count": y, "predictor": x})


@pytest.fixture
def panel_data():
    """Two short time series (groups) for autocorrelation tests."""
    return pd.DataFrame(
        {
            "y": [1.0, 2.0, 3.0, 4.0, 10.0, 20.0, 30.0],
            "g": ["a", "a", "a", "a", "b", "b", "b"],
            "t": [1, 2, 3, 4, 1, 2, 3],
        }
    )


@pytest.fixture
def log_stream():
    """
    Capture brmskit log output.

    The brmskit logger does not propagate to the root logger, so pytest's
    ``caplog`` never sees its records; attach a handler to it instead.
    """
    from brmskit.helpers.log import BrmskitFormatter, get_logger

    logger = get_logger()
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(BrmskitFormatter())
    old_level = logger.level
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    try:
        yield stream
    finally:
        logger.removeHandler(handler)
        logger.setLevel(old_level)


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """Point brmskit at an empty config file and clear BRMSKIT_* overrides."""
    from brmskit.config import reset_settings

    for var in ("BRMSKIT_BACKEND", "BRMSKIT_CORES", "BRMSKIT_LOG_LEVEL", "BRMSKIT_CRAN_MIRROR"):
        monkeypatch.delenv(var, raising=False)
    path = tmp_path / "config.json"
    monkeypatch.setenv("BRMSKIT_CONFIG", str(path))
    reset_settings()
    yield path
    reset_settings()


def pytest_configure(config):
    """
    Custom pytest configuration.
    """
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests requiring R and brms"
    )
    config.addinivalue_line(
        "markers", "requires_brms: marks tests that require brms to be installed"
    )


def _brms_is_available() -> bool:
    try:
        from brmskit import runtime

        return runtime.get_brms_version() is not None
    except Exception:
        return False


@pytest.fixture(scope="session")
def brms_available():
    """
    Check if brms is available and can be imported.

    This is a session-scoped fixture that only checks once.
    """
    return _brms_is_available()


def pytest_collection_modifyitems(config, items):
    """
    Automatically skip tests when required.
    """
    skip_requires_brms = pytest.mark.skip(
        reason="brms not installed - run: python -c 'import brmskit; brmskit.install_brms()'"
    )
    if not any("requires_brms" in item.keywords for item in items):
        return

    if _brms_is_available():
        return

    for item in items:
        if "requires_brms" in item.keywords:
            item.add_marker(skip_requires_brms)
