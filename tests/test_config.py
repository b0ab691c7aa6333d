"""Tests for config.py environment variable parsing helpers."""

import importlib
import logging
import os
from unittest import mock


class TestGetIntEnv:
    """Tests for get_int_env helper function."""

    def test_returns_default_when_env_not_set(self):
        """Should return default value when environment variable is not set."""
        from config import get_int_env

        with mock.patch.dict(os.environ, {}, clear=True):
            assert get_int_env("NONEXISTENT_VAR", 42) == 42

    def test_parses_valid_integer(self):
        from config import get_int_env

        with mock.patch.dict(os.environ, {"TEST_INT": "123"}):
            assert get_int_env("TEST_INT", 0) == 123

    def test_returns_default_on_invalid_value(self, caplog):
        """Should return default and log warning when value is not a valid integer."""
        from config import get_int_env

        with mock.patch.dict(os.environ, {"TEST_INT": "abc"}):
            with caplog.at_level(logging.WARNING):
                assert get_int_env("TEST_INT", 42) == 42
                assert "Invalid TEST_INT='abc'" in caplog.text

    def test_min_validation_enforced(self, caplog):
        """A page size of zero is rejected in favour of the default."""
        from config import get_int_env

        with mock.patch.dict(os.environ, {"GLOBALUSAGE_MAX_LIMIT": "0"}):
            with caplog.at_level(logging.WARNING):
                assert get_int_env("GLOBALUSAGE_MAX_LIMIT", 500, min_val=1) == 500
                assert "below minimum 1" in caplog.text

    def test_max_validation_enforced(self, caplog):
        from config import get_int_env

        with mock.patch.dict(os.environ, {"GLOBALUSAGE_DEFAULT_LIMIT": "900"}):
            with caplog.at_level(logging.WARNING):
                assert get_int_env("GLOBALUSAGE_DEFAULT_LIMIT", 50, min_val=1, max_val=500) == 50
                assert "above maximum 500" in caplog.text

    def test_no_warning_when_env_not_set_with_validation(self, caplog):
        from config import get_int_env

        with mock.patch.dict(os.environ, {}, clear=True):
            with caplog.at_level(logging.WARNING):
                assert get_int_env("NONEXISTENT_VAR", 5, min_val=10) == 5
                assert caplog.text == ""


class TestGetFloatEnv:
    """Tests for get_float_env helper function."""

    def test_parses_valid_float(self):
        from config import get_float_env

        with mock.patch.dict(os.environ, {"GLOBALUSAGE_SLOW_QUERY_THRESHOLD": "0.25"}):
            assert get_float_env("GLOBALUSAGE_SLOW_QUERY_THRESHOLD", 1.0) == 0.25

    def test_returns_default_on_invalid_value(self, caplog):
        from config import get_float_env

        with mock.patch.dict(os.environ, {"TEST_FLOAT": "slow"}):
            with caplog.at_level(logging.WARNING):
                assert get_float_env("TEST_FLOAT", 1.0) == 1.0
                assert "Invalid TEST_FLOAT='slow'" in caplog.text

    def test_rejects_infinity(self, caplog):
        from config import get_float_env

        with mock.patch.dict(os.environ, {"TEST_FLOAT": "inf"}):
            with caplog.at_level(logging.WARNING):
                assert get_float_env("TEST_FLOAT", 1.0) == 1.0
                assert "special float" in caplog.text

    def test_min_validation_enforced(self):
        from config import get_float_env

        with mock.patch.dict(os.environ, {"TEST_FLOAT": "-1"}):
            assert get_float_env("TEST_FLOAT", 1.0, min_val=0.0) == 1.0


class TestGetBoolEnv:
    """Tests for get_bool_env helper function."""

    def test_default_when_not_set(self):
        from config import get_bool_env

        with mock.patch.dict(os.environ, {}, clear=True):
            assert get_bool_env("TEST_BOOL", True) is True
            assert get_bool_env("TEST_BOOL", False) is False

    def test_truthy_values(self):
        from config import get_bool_env

        for value in ("true", "TRUE", "1", "yes", " Yes "):
            with mock.patch.dict(os.environ, {"TEST_BOOL": value}):
                assert get_bool_env("TEST_BOOL", False) is True

    def test_falsy_values(self):
        from config import get_bool_env

        for value in ("false", "0", "no", ""):
            with mock.patch.dict(os.environ, {"TEST_BOOL": value}):
                assert get_bool_env("TEST_BOOL", True) is False


class TestSharedRepoSettings:
    """Tests for module-level shared repository settings."""

    def _reload(self, env):
        import config

        with mock.patch.dict(os.environ, env):
            return importlib.reload(config)

    def teardown_method(self):
        # Restore module values computed from the real environment
        import config

        importlib.reload(config)

    def test_empty_site_id_means_no_shared_repo(self):
        config = self._reload({"GLOBALUSAGE_SHARED_REPO_SITE_ID": ""})
        assert config.SHARED_REPO_SITE_ID is None

    def test_url_trailing_slash_stripped(self):
        config = self._reload({"GLOBALUSAGE_SHARED_REPO_URL": "https://commons.example.org/wiki/"})
        assert config.SHARED_REPO_URL == "https://commons.example.org/wiki"

    def test_log_level_upper_cased(self):
        config = self._reload({"GLOBALUSAGE_LOG_LEVEL": "debug"})
        assert config.LOG_LEVEL == "DEBUG"
