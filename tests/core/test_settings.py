from core.settings import (
    GENLOG_SANDBOX_URL,
    GENPAY_PRODUCTION_URL,
    GENPAY_SANDBOX_URL,
    PaymentSettings,
)


def test_nested_env_overrides(monkeypatch):
    monkeypatch.setenv("GENPAY__ENVIRONMENT", "production")
    monkeypatch.setenv("GENPAY__FREE_INSTALLMENTS", "3")
    monkeypatch.setenv("RETRY__MAX", "2")

    settings = PaymentSettings()

    assert settings.genpay.base_url == GENPAY_PRODUCTION_URL
    assert settings.genpay.free_installments == 3
    assert settings.retry.max == 2
    assert settings.genlog.base_url == GENLOG_SANDBOX_URL


def test_defaults_are_sandbox_and_fail_fast(monkeypatch):
    monkeypatch.delenv("GENPAY__ENVIRONMENT", raising=False)
    settings = PaymentSettings()

    assert settings.genpay.base_url == GENPAY_SANDBOX_URL
    assert settings.retry.max == 0
    assert settings.timeouts.total == 60.0
    assert settings.genpay.timezone == "America/Sao_Paulo"
