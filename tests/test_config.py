from stepwise.runtime.config import EngineConfig, get_max_loop_iterations


def test_defaults_without_env():
    config = EngineConfig.from_env()
    assert config.max_loop_iterations is None
    assert config.log_redact_args is True


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("STEPWISE_MAX_LOOP_ITERATIONS", "250")
    monkeypatch.setenv("STEPWISE_LOG_REDACT_ARGS", "no")
    config = EngineConfig.from_env()
    assert config.max_loop_iterations == 250
    assert config.log_redact_args is False


def test_zero_and_invalid_limits_mean_unlimited(monkeypatch):
    monkeypatch.setenv("STEPWISE_MAX_LOOP_ITERATIONS", "0")
    assert get_max_loop_iterations() is None
    monkeypatch.setenv("STEPWISE_MAX_LOOP_ITERATIONS", "lots")
    assert get_max_loop_iterations() is None
