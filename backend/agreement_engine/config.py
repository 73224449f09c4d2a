"""
Agreement Engine - Configuration

One validated Settings object, built once at startup (Settings.from_env)
and passed by reference into the resolver, pricing assembler, directory
client and job orchestrator. Nothing below main.py reads os.environ.
"""
import os
import re
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


# Pricing matrix column labels, keyed by DiscountBucket value
DEFAULT_PRICING_COLUMNS: Dict[str, str] = {
    "current_student": "Current Student",
    "current_staff": "Current Staff",
    "alumni_within_12m": "Alumni < 12m",
    "alumni_over_12m": "Alumni > 12m",
    "former_staff_within_12m": "Former Staff < 12m",
    "former_staff_over_12m": "Former Staff > 12m",
}

DEFAULT_NONE_SENTINELS: List[str] = ["none", "n/a", "na", "no discount", "not applicable", "-"]


def _split_keys(raw: str) -> List[str]:
    return [k for k in re.split(r"[,\s]+", raw.strip()) if k]


class DirectorySettings(BaseModel):
    """External identity directory (constituent CRM) connection."""
    base_url: str = "https://api.sky.blackbaud.com"
    token_url: str = "https://oauth2.sky.blackbaud.com/token"
    client_id: str = ""
    client_secret: str = ""
    access_token: str = ""
    refresh_token: str = ""
    token_expires_at: Optional[str] = None
    subscription_keys: List[str] = Field(default_factory=list)
    refresh_leeway_seconds: int = 180
    request_timeout_seconds: float = 30.0
    refresh_command: Optional[str] = None

    @field_validator("base_url", "token_url")
    @classmethod
    def _require_url(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"expected an http(s) URL, got {v!r}")
        return v

    @field_validator("subscription_keys")
    @classmethod
    def _dedupe_keys(cls, v: List[str]) -> List[str]:
        seen = []
        for key in v:
            key = key.strip()
            if key and key not in seen:
                seen.append(key)
        return seen


class ResolverSettings(BaseModel):
    """Thresholds used by the eligibility resolver."""
    accept_score: int = 85
    min_margin: int = 15
    window_months: int = 12


class PricingSettings(BaseModel):
    """Pricing matrix layout and fee label formatting."""
    currency: str = "AUD"
    none_sentinels: List[str] = Field(default_factory=lambda: list(DEFAULT_NONE_SENTINELS))
    columns: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_PRICING_COLUMNS))

    @field_validator("columns")
    @classmethod
    def _all_columns_present(cls, v: Dict[str, str]) -> Dict[str, str]:
        missing = set(DEFAULT_PRICING_COLUMNS) - set(v)
        if missing:
            raise ValueError(f"pricing columns missing: {sorted(missing)}")
        return v

    def is_no_request(self, category: Optional[str]) -> bool:
        text = (category or "").strip().lower()
        return not text or text in self.none_sentinels


class JobSettings(BaseModel):
    """Validation job and document delivery behaviour."""
    pacing_delay_seconds: float = 0.25
    download_ttl_seconds: int = 3600
    public_base_url: str = ""
    agreement_address: str = "3 Broadway, Ultimo, NSW, 2007"
    renderer_command: Optional[str] = None
    pdf_outdir: Optional[str] = None
    dev_mode: bool = False

    @field_validator("download_ttl_seconds")
    @classmethod
    def _min_ttl(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("download_ttl_seconds must be positive")
        return max(30, v)

    @field_validator("pacing_delay_seconds")
    @classmethod
    def _non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("pacing_delay_seconds must be >= 0")
        return v


class Settings(BaseModel):
    """Top-level application settings."""
    database_url: str = "sqlite:///./agreement_engine.db"
    jwt_secret_key: str = "agreement-engine-secret-change-in-production"
    jwt_algorithm: str = "HS256"
    internal_api_key: Optional[str] = None
    log_level: str = "INFO"
    directory: DirectorySettings = Field(default_factory=DirectorySettings)
    resolver: ResolverSettings = Field(default_factory=ResolverSettings)
    pricing: PricingSettings = Field(default_factory=PricingSettings)
    jobs: JobSettings = Field(default_factory=JobSettings)

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, v: str) -> str:
        return v.strip().upper() or "INFO"

    @classmethod
    def from_env(cls, env: Optional[Dict[str, str]] = None) -> "Settings":
        """Build settings from environment variables (defaults to os.environ)."""
        env = dict(os.environ if env is None else env)

        def get(name: str, default: str = "") -> str:
            return (env.get(name) or default).strip()

        keys = _split_keys(get("SKY_SUBSCRIPTION_KEYS"))
        for name in ("SKY_SUBSCRIPTION_KEY_PRIMARY", "SKY_SUBSCRIPTION_KEY_SECONDARY", "SKY_SUBSCRIPTION_KEY"):
            if get(name):
                keys.append(get(name))

        directory = DirectorySettings(
            base_url=get("SKY_API_BASE", "https://api.sky.blackbaud.com"),
            token_url=get("SKY_TOKEN_URL", "https://oauth2.sky.blackbaud.com/token"),
            client_id=get("SKY_CLIENT_ID"),
            client_secret=get("SKY_CLIENT_SECRET"),
            access_token=get("SKY_ACCESS_TOKEN"),
            refresh_token=get("SKY_REFRESH_TOKEN"),
            token_expires_at=get("SKY_TOKEN_EXPIRES_AT") or None,
            subscription_keys=keys,
            refresh_command=get("SKY_REFRESH_COMMAND") or None,
        )
        jobs = JobSettings(
            pacing_delay_seconds=float(get("JOB_PACING_DELAY_SECONDS", "0.25")),
            download_ttl_seconds=int(get("URL_TTL_SECONDS", "3600")),
            public_base_url=get("PUBLIC_BASE_URL").rstrip("/"),
            renderer_command=get("GENERATOR_COMMAND") or None,
            pdf_outdir=get("PDF_OUTDIR") or None,
            dev_mode=get("DEV_MODE").lower() == "true",
        )
        return cls(
            database_url=get("DATABASE_URL", "sqlite:///./agreement_engine.db"),
            jwt_secret_key=get("JWT_SECRET_KEY", "agreement-engine-secret-change-in-production"),
            internal_api_key=get("AUTH_TOKEN") or None,
            log_level=get("LOG_LEVEL", "INFO"),
            directory=directory,
            jobs=jobs,
        )
