"""
Settings Tests
"""
import pytest
from pydantic import ValidationError

from agreement_engine.config import DirectorySettings, JobSettings, PricingSettings, Settings


class TestFromEnv:

    def test_defaults(self):
        settings = Settings.from_env({})
        assert settings.internal_api_key is None
        assert settings.jobs.download_ttl_seconds == 3600
        assert settings.directory.subscription_keys == []
        assert settings.resolver.accept_score == 85

    def test_subscription_keys_merged_and_deduplicated(self):
        settings = Settings.from_env({
            "SKY_SUBSCRIPTION_KEYS": "k1, k2  k1",
            "SKY_SUBSCRIPTION_KEY_PRIMARY": "k2",
            "SKY_SUBSCRIPTION_KEY_SECONDARY": "k3",
        })
        assert settings.directory.subscription_keys == ["k1", "k2", "k3"]

    def test_job_values(self):
        settings = Settings.from_env({
            "URL_TTL_SECONDS": "5",
            "PUBLIC_BASE_URL": "https://agreements.test/",
            "AUTH_TOKEN": "secret",
            "DEV_MODE": "TRUE",
            "LOG_LEVEL": "debug",
        })
        assert settings.jobs.download_ttl_seconds == 30
        assert settings.jobs.public_base_url == "https://agreements.test"
        assert settings.internal_api_key == "secret"
        assert settings.jobs.dev_mode
        assert settings.log_level == "DEBUG"


class TestValidation:

    def test_negative_ttl_rejected(self):
        with pytest.raises(ValidationError):
            JobSettings(download_ttl_seconds=-1)

    def test_negative_pacing_rejected(self):
        with pytest.raises(ValidationError):
            JobSettings(pacing_delay_seconds=-0.5)

    def test_directory_url_must_be_http(self):
        with pytest.raises(ValidationError):
            DirectorySettings(base_url="ftp://directory.test")
        assert DirectorySettings(base_url="https://directory.test/").base_url == "https://directory.test"

    def test_pricing_columns_complete(self):
        with pytest.raises(ValidationError):
            PricingSettings(columns={"current_student": "Current Student"})


class TestNoRequest:

    @pytest.mark.parametrize("text", [None, "", "  ", "N/A", "none", "No Discount", "-"])
    def test_sentinels(self, text):
        assert PricingSettings().is_no_request(text)

    @pytest.mark.parametrize("text", ["Current Student", "Alumni < 12m"])
    def test_real_categories(self, text):
        assert not PricingSettings().is_no_request(text)
