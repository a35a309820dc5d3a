"""
Runtime configuration, read from environment variables.
"""

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

from ..logging import get_logger

log = get_logger(__name__)

DEFAULT_PRIMARY_LANGUAGES = "eng+rus"
DEFAULT_FALLBACK_LANGUAGES = "rus+kaz+eng"
DEFAULT_MIN_TEXT_LENGTH = 50
DEFAULT_RENDER_SCALE = 2.0

# Trained data shipped next to the working directory, used when no
# tessdata directory is configured and this one exists.
DEFAULT_TESSDATA_DIR = Path("tessdata")


@dataclass(frozen=True)
class PipelineConfig:
    """Settings for engines, rendering and storage."""
    tessdata_dir: Optional[Path] = None
    primary_languages: str = DEFAULT_PRIMARY_LANGUAGES
    fallback_languages: str = DEFAULT_FALLBACK_LANGUAGES
    min_text_length: int = DEFAULT_MIN_TEXT_LENGTH
    render_scale: float = DEFAULT_RENDER_SCALE
    temp_dir: Optional[Path] = None
    db_path: Path = Path("./receipts.sqlite")
    rules_path: Path = Path("./category_rules.json")

    @classmethod
    def from_env(cls, environ=None) -> "PipelineConfig":
        """
        Build a config from RECEIPT_SCAN_* variables.

        RECEIPT_SCAN_TESSDATA falls back to TESSDATA_PREFIX, then to
        ./tessdata when that directory exists; with none of them the
        engines use the system Tesseract models. Invalid numbers are
        ignored with a warning.
        """
        env = os.environ if environ is None else environ

        tessdata = env.get("RECEIPT_SCAN_TESSDATA") or env.get("TESSDATA_PREFIX")
        if not tessdata and DEFAULT_TESSDATA_DIR.is_dir():
            tessdata = DEFAULT_TESSDATA_DIR
        temp_dir = env.get("RECEIPT_SCAN_TEMP_DIR")

        return cls(
            tessdata_dir=Path(tessdata) if tessdata else None,
            primary_languages=env.get("RECEIPT_SCAN_PRIMARY_LANG") or DEFAULT_PRIMARY_LANGUAGES,
            fallback_languages=env.get("RECEIPT_SCAN_FALLBACK_LANG") or DEFAULT_FALLBACK_LANGUAGES,
            min_text_length=_env_number(env, "RECEIPT_SCAN_MIN_TEXT_LENGTH", int, DEFAULT_MIN_TEXT_LENGTH),
            render_scale=_env_number(env, "RECEIPT_SCAN_RENDER_SCALE", float, DEFAULT_RENDER_SCALE),
            temp_dir=Path(temp_dir) if temp_dir else None,
            db_path=Path(env.get("RECEIPT_SCAN_DB") or "./receipts.sqlite"),
            rules_path=Path(env.get("RECEIPT_SCAN_RULES") or "./category_rules.json"),
        )

    def with_overrides(self, **overrides) -> "PipelineConfig":
        """Copy with the given fields replaced; None values are ignored."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def _env_number(env, name: str, cast, default):
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw.strip())
    except ValueError:
        log.warning(f"{name}={raw!r} is not a valid number; using {default}")
        return default
    if value <= 0:
        log.warning(f"{name} must be positive; using {default}")
        return default
    return value
