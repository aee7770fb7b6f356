"""Configuration selection and validation."""

import pytest

from hospital_meals.config import (
    DevelopmentConfig,
    ProductionConfig,
    TestingConfig,
    get_config,
    validate_configuration,
)
from hospital_meals.config.database import DatabaseConfig


class TestGetConfig:

    @pytest.mark.parametrize('name,expected', [
        ('development', DevelopmentConfig),
        ('testing', TestingConfig),
        ('PRODUCTION', ProductionConfig),
    ])
    def test_known_environments(self, name, expected):
        assert get_config(name) is expected

    def test_defaults_to_flask_env(self, monkeypatch):
        monkeypatch.setenv('FLASK_ENV', 'testing')
        assert get_config() is TestingConfig

    def test_unknown_environment(self):
        with pytest.raises(ValueError, match="Unsupported environment 'staging'"):
            get_config('staging')

    def test_testing_config_disables_rate_limiting(self):
        assert TestingConfig.TESTING is True
        assert TestingConfig.RATELIMIT_ENABLED is False
        assert TestingConfig.MONGODB_DATABASE == 'hospital_meals_test'


class TestValidateConfiguration:

    def _config(self, **overrides):
        config = {
            'SECRET_KEY': 'k' * 40,
            'MONGODB_OPERATION_TIMEOUT': 5.0,
            'DEFAULT_PAGE_SIZE': 10,
            'MAX_PAGE_SIZE': 100,
        }
        config.update(overrides)
        return config

    def test_clean_configuration(self, monkeypatch):
        monkeypatch.setenv('SECRET_KEY', 'k' * 40)
        monkeypatch.setenv('MONGODB_URI', 'mongodb://db:27017')
        assert validate_configuration(self._config()) == []

    def test_missing_environment_values(self, monkeypatch):
        monkeypatch.delenv('SECRET_KEY', raising=False)
        monkeypatch.delenv('MONGODB_URI', raising=False)
        issues = validate_configuration(self._config())
        assert "SECRET_KEY must be set explicitly" in issues
        assert "MONGODB_URI must be set explicitly" in issues

    def test_short_secret_and_bad_limits(self, monkeypatch):
        monkeypatch.setenv('SECRET_KEY', 'short')
        monkeypatch.setenv('MONGODB_URI', 'mongodb://db:27017')
        issues = validate_configuration(self._config(
            SECRET_KEY='short', MONGODB_OPERATION_TIMEOUT=0, MAX_PAGE_SIZE=5,
        ))
        assert issues == [
            "SECRET_KEY should be at least 32 characters long",
            "MONGODB_OPERATION_TIMEOUT must be positive",
            "MAX_PAGE_SIZE must not be smaller than DEFAULT_PAGE_SIZE",
        ]

    def test_production_refuses_to_start_with_issues(self, monkeypatch, mocker):
        monkeypatch.delenv('SECRET_KEY', raising=False)
        app = mocker.MagicMock()
        app.config = self._config()
        with pytest.raises(RuntimeError, match="Invalid production configuration"):
            ProductionConfig.init_app(app)


class TestDatabaseConfig:

    def test_client_options_disable_driver_retries(self):
        options = DatabaseConfig({'MONGODB_MAX_POOL_SIZE': '20'}).client_options()
        assert options['retryWrites'] is False
        assert options['retryReads'] is False
        assert options['w'] == 'majority'
        assert options['maxPoolSize'] == 20

    def test_reads_flask_config_keys(self):
        config = DatabaseConfig({
            'MONGODB_URI': 'mongodb://db:27017',
            'MONGODB_DATABASE': 'meals',
            'MONGODB_OPERATION_TIMEOUT': '1.5',
        })
        assert config.uri == 'mongodb://db:27017'
        assert config.database == 'meals'
        assert config.operation_timeout == 1.5

    def test_client_is_created_lazily(self):
        client = DatabaseConfig({'MONGODB_URI': 'mongodb://127.0.0.1:1',
                                 'MONGODB_MIN_POOL_SIZE': 0}).get_mongodb_client()
        try:
            assert client.options.retry_writes is False
        finally:
            client.close()
