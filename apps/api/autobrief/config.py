import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, FrozenSet, Optional

DEFAULT_MEDIA_TYPES = (
    "application/pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "audio/mpeg",
    "audio/mp3",
    "audio/wav",
    "video/mp4",
)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: tuple) -> FrozenSet[str]:
    raw = os.environ.get(name)
    if not raw:
        return frozenset(default)
    return frozenset(item.strip().lower() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    database_url: Optional[str] = None
    redis_url: str = "redis://redis:6379/0"
    frontend_origin: str = "http://localhost:3000"

    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o"
    openai_transcribe_model: str = "whisper-1"
    max_content_chars: int = 15000

    storage_root: str = "data/objects"
    max_upload_bytes: int = 100 * 1024 * 1024
    allowed_media_types: FrozenSet[str] = field(
        default_factory=lambda: frozenset(DEFAULT_MEDIA_TYPES)
    )
    allow_anonymous_uploads: bool = True
    # None means unlimited for that plan.
    plan_summary_limits: Dict[str, Optional[int]] = field(
        default_factory=lambda: {"free": 5, "professional": None, "enterprise": None}
    )

    observer_timeout_seconds: float = 120.0

    solana_rpc_url: str = "https://api.mainnet-beta.solana.com"
    payment_recipient_address: str = ""
    plan_prices: Dict[str, float] = field(
        default_factory=lambda: {"professional": 0.5, "enterprise": 1.0}
    )

    @classmethod
    def from_env(cls) -> "Settings":
        max_upload_mb = int(os.environ.get("MAX_UPLOAD_MB", "100"))
        return cls(
            database_url=os.environ.get("DATABASE_URL"),
            redis_url=os.environ.get("REDIS_URL")
            or os.environ.get("CELERY_BROKER_URL")
            or "redis://redis:6379/0",
            frontend_origin=os.environ.get("FRONTEND_ORIGIN", "http://localhost:3000"),
            openai_api_key=os.environ.get("OPENAI_API_KEY"),
            openai_model=os.environ.get("OPENAI_MODEL", "gpt-4o"),
            openai_transcribe_model=os.environ.get("OPENAI_TRANSCRIBE_MODEL", "whisper-1"),
            max_content_chars=int(os.environ.get("MAX_CONTENT_CHARS", "15000")),
            storage_root=os.environ.get("STORAGE_ROOT", "data/objects"),
            max_upload_bytes=max_upload_mb * 1024 * 1024,
            allowed_media_types=_env_list("ALLOWED_MEDIA_TYPES", DEFAULT_MEDIA_TYPES),
            allow_anonymous_uploads=_env_bool("ALLOW_ANONYMOUS_UPLOADS", True),
            plan_summary_limits={
                "free": int(os.environ.get("FREE_PLAN_SUMMARY_LIMIT", "5")),
                "professional": None,
                "enterprise": None,
            },
            observer_timeout_seconds=float(os.environ.get("OBSERVER_TIMEOUT_SECONDS", "120")),
            solana_rpc_url=os.environ.get("SOLANA_RPC_URL", "https://api.mainnet-beta.solana.com"),
            payment_recipient_address=os.environ.get("PAYMENT_RECIPIENT_ADDRESS", ""),
            plan_prices={
                "professional": float(os.environ.get("PLAN_PRICE_PROFESSIONAL", "0.5")),
                "enterprise": float(os.environ.get("PLAN_PRICE_ENTERPRISE", "1.0")),
            },
        )

    def summary_limit_for(self, plan: str) -> Optional[int]:
        # Unknown plans fall back to the free tier allowance.
        if plan in self.plan_summary_limits:
            return self.plan_summary_limits[plan]
        return self.plan_summary_limits.get("free")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
