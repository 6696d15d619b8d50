"""
Tests for brmskit.config: file, environment and persisted settings.
"""
import json
import logging

import pytest


class TestDefaults:
    def test_defaults_without_file(self, isolated_config):
        from brmskit.config import get_settings

        settings = get_settings()

        assert settings.backend == "cmdstanr"
        assert settings.cores == 2
        assert settings.log_level == logging.INFO
        assert settings.cran_mirror == "https://cloud.r-project.org"

    def test_config_path_override(self, isolated_config):
        from brmskit.config import config_path

        assert config_path() == isolated_config

    def test_settings_are_cached(self, isolated_config):
        from brmskit.config import get_settings

        assert get_settings() is get_settings()


class TestSources:
    """File values are overridden by BRMSKIT_* environment variables."""

    def test_file_values(self, isolated_config):
        from brmskit.config import get_settings

        isolated_config.write_text(
            json.dumps({"backend": "rstan", "cores": 4, "unknown_key": 1})
        )
        settings = get_settings()

        assert settings.backend == "rstan"
        assert settings.cores == 4

    def test_string_cores_in_file(self, isolated_config):
        from brmskit.brms_functions.brm import _warn_cores
        from brmskit.config import get_settings

        isolated_config.write_text(json.dumps({"cores": "4"}))
        settings = get_settings()

        assert settings.cores == 4
        assert isinstance(settings.cores, int)
        _warn_cores(settings.cores)

    def test_env_overrides_file(self, isolated_config, monkeypatch):
        from brmskit.config import get_settings, reset_settings

        isolated_config.write_text(json.dumps({"cores": 4, "log_level": "WARNING"}))
        monkeypatch.setenv("BRMSKIT_CORES", "8")
        monkeypatch.setenv("BRMSKIT_LOG_LEVEL", "debug")
        reset_settings()

        settings = get_settings()
        assert settings.cores == 8
        assert settings.log_level == logging.DEBUG

    def test_numeric_log_level(self, isolated_config, monkeypatch):
        from brmskit.config import get_settings

        monkeypatch.setenv("BRMSKIT_LOG_LEVEL", "30")
        assert get_settings().log_level == logging.WARNING

    def test_unknown_log_level(self, isolated_config, monkeypatch):
        from brmskit.config import get_settings

        monkeypatch.setenv("BRMSKIT_LOG_LEVEL", "LOUD")
        with pytest.raises(ValueError, match="Unknown log level"):
            get_settings()

    def test_invalid_backend(self, isolated_config, monkeypatch):
        from brmskit.config import get_settings

        monkeypatch.setenv("BRMSKIT_BACKEND", "pystan")
        with pytest.raises(ValueError, match="backend must be one of"):
            get_settings()

    def test_file_must_hold_object(self, isolated_config):
        from brmskit.config import get_settings

        isolated_config.write_text("[1, 2]")
        with pytest.raises(ValueError, match="JSON object"):
            get_settings()


class TestSaveSettings:
    def test_save_and_reload(self, isolated_config):
        from brmskit.config import get_settings, save_settings

        settings = save_settings(backend="rstan", log_level="ERROR")

        assert settings.backend == "rstan"
        assert settings.log_level == logging.ERROR
        stored = json.loads(isolated_config.read_text())
        assert stored["backend"] == "rstan"
        assert stored["log_level"] == logging.ERROR
        assert get_settings() == settings

    def test_save_keeps_other_values(self, isolated_config):
        from brmskit.config import save_settings

        save_settings(cores=6)
        settings = save_settings(backend="rstan")

        assert settings.cores == 6

    def test_save_validates(self, isolated_config):
        from brmskit.config import save_settings

        with pytest.raises(ValueError, match="cores"):
            save_settings(cores=0)
        assert not isolated_config.exists()
