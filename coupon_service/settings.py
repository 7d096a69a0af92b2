"""Application settings management for the coupon scanner service."""
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

STORAGE_BACKENDS = ("memory", "bubble")
OCR_ENGINES = ("local", "rapidocr")


@dataclass(frozen=True)
class Settings:
    storage_backend: str
    bubble_api_base: Optional[str]
    bubble_api_key: Optional[str]
    ocr_engine: str
    ocr_language: str
    admin_token: Optional[str]
    idempotency_ttl_seconds: int

    @staticmethod
    def _require_env(name: str) -> str:
        value = os.getenv(name)
        if value is None or not value.strip():
            raise RuntimeError(f"Environment variable {name} is required")
        return value.strip()

    @staticmethod
    def _optional_env(name: str, default: Optional[str] = None) -> Optional[str]:
        value = os.getenv(name)
        if value is None or not value.strip():
            return default
        return value.strip()

    @classmethod
    def load(cls) -> "Settings":
        _ensure_env_file_loaded()
        storage_backend = (cls._optional_env("STORAGE_BACKEND", "memory") or "memory").lower()
        if storage_backend not in STORAGE_BACKENDS:
            raise RuntimeError(f"STORAGE_BACKEND must be one of {', '.join(STORAGE_BACKENDS)}")

        bubble_api_base: Optional[str] = None
        bubble_api_key: Optional[str] = None
        if storage_backend == "bubble":
            raw_base = cls._require_env("BUBBLE_API_BASE")
            if not raw_base.startswith("https://"):
                raise RuntimeError("BUBBLE_API_BASE must start with https://")
            # The client always appends `/obj`, so accept either the `/api/1.1`
            # base or the `/api/1.1/obj` collection root.
            base = raw_base.rstrip("/")
            if base.endswith("/obj"):
                base = base[: -len("/obj")]
            bubble_api_base = base.rstrip("/")
            bubble_api_key = cls._require_env("BUBBLE_API_KEY")

        ocr_engine = (cls._optional_env("OCR_ENGINE", "local") or "local").lower()
        if ocr_engine not in OCR_ENGINES:
            raise RuntimeError(f"OCR_ENGINE must be one of {', '.join(OCR_ENGINES)}")
        ocr_language = cls._optional_env("OCR_LANGUAGE", "eng") or "eng"

        raw_ttl = cls._optional_env("IDEMPOTENCY_TTL_SECONDS", "600") or "600"
        try:
            idempotency_ttl = int(raw_ttl)
        except ValueError as exc:
            raise RuntimeError("IDEMPOTENCY_TTL_SECONDS must be an integer") from exc
        if idempotency_ttl < 0:
            raise RuntimeError("IDEMPOTENCY_TTL_SECONDS must not be negative")

        return cls(
            storage_backend=storage_backend,
            bubble_api_base=bubble_api_base,
            bubble_api_key=bubble_api_key,
            ocr_engine=ocr_engine,
            ocr_language=ocr_language,
            admin_token=cls._optional_env("ADMIN_TOKEN"),
            idempotency_ttl_seconds=idempotency_ttl,
        )


@lru_cache()
def get_settings() -> Settings:
    return Settings.load()


def reset_settings_state() -> None:
    """Reset cached settings and environment file state (for tests)."""
    global _ENV_FILE_LOADED
    _ENV_FILE_LOADED = False
    get_settings.cache_clear()


_ENV_FILE_LOADED = False


def _ensure_env_file_loaded() -> None:
    global _ENV_FILE_LOADED
    if _ENV_FILE_LOADED:
        return
    candidates = [Path.cwd() / ".env", Path(__file__).resolve().parent.parent / ".env"]
    loaded = False
    for env_path in candidates:
        if env_path.exists():
            load_dotenv(dotenv_path=env_path, override=False)
            loaded = True
    if not loaded:
        load_dotenv(override=False)
    _ENV_FILE_LOADED = True


__all__ = ["Settings", "get_settings", "reset_settings_state"]
