# apps/common/settings.py
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    return data or {}


def _env(key: str) -> Optional[str]:
    v = os.getenv(key)
    return v.strip() if isinstance(v, str) and v.strip() else None


def _as_path(v: str) -> Path:
    return Path(v).expanduser().resolve()


def _as_int(key: str, v: Any) -> int:
    try:
        return int(v)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid integer for {key}: {v!r}") from e


def _as_float(key: str, v: Any) -> float:
    try:
        return float(v)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid number for {key}: {v!r}") from e


@dataclass(frozen=True)
class QualityGate:
    min_blur_score: float = 35.0
    max_white_ratio: float = 0.50
    max_black_ratio: float = 0.60
    max_resolution: int = 1600


@dataclass(frozen=True)
class VerifierSettings:
    auth_min_score: int = 5
    name_threshold: float = 0.7
    ocr_lang: str = "en"
    records_dir: Path = Path("data/verifications")
    uploads_dir: Path = Path("data/raw/uploads")
    quality_gate: QualityGate = field(default_factory=QualityGate)


def load_settings(config_path: Optional[str] = None) -> VerifierSettings:
    """
    Resolution order (highest -> lowest):
      1) Explicit function argument
      2) CNIC_CONFIG_PATH env var
      3) config/verifier.yaml
    A missing file means defaults. Individual fields can be overridden via env vars:
      - CNIC_AUTH_MIN_SCORE
      - CNIC_NAME_THRESHOLD
      - CNIC_OCR_LANG
      - CNIC_RECORDS_DIR
      - CNIC_UPLOADS_DIR
    """
    cfg_path = (
        Path(config_path)
        if config_path
        else Path(_env("CNIC_CONFIG_PATH") or "config/verifier.yaml")
    )
    cfg = _read_yaml(cfg_path)
    defaults = VerifierSettings()

    auth_min_score = _env("CNIC_AUTH_MIN_SCORE") or cfg.get("auth_min_score", defaults.auth_min_score)
    name_threshold = _env("CNIC_NAME_THRESHOLD") or cfg.get("name_threshold", defaults.name_threshold)
    ocr_lang = _env("CNIC_OCR_LANG") or cfg.get("ocr_lang") or defaults.ocr_lang
    records_dir = _env("CNIC_RECORDS_DIR") or cfg.get("records_dir") or str(defaults.records_dir)
    uploads_dir = _env("CNIC_UPLOADS_DIR") or cfg.get("uploads_dir") or str(defaults.uploads_dir)

    q_cfg = cfg.get("quality_gate") or {}
    q_def = defaults.quality_gate
    quality_gate = QualityGate(
        min_blur_score=_as_float("quality_gate.min_blur_score", q_cfg.get("min_blur_score", q_def.min_blur_score)),
        max_white_ratio=_as_float("quality_gate.max_white_ratio", q_cfg.get("max_white_ratio", q_def.max_white_ratio)),
        max_black_ratio=_as_float("quality_gate.max_black_ratio", q_cfg.get("max_black_ratio", q_def.max_black_ratio)),
        max_resolution=_as_int("quality_gate.max_resolution", q_cfg.get("max_resolution", q_def.max_resolution)),
    )

    settings = VerifierSettings(
        auth_min_score=_as_int("auth_min_score / CNIC_AUTH_MIN_SCORE", auth_min_score),
        name_threshold=_as_float("name_threshold / CNIC_NAME_THRESHOLD", name_threshold),
        ocr_lang=str(ocr_lang),
        records_dir=_as_path(str(records_dir)),
        uploads_dir=_as_path(str(uploads_dir)),
        quality_gate=quality_gate,
    )

    if not 0.0 <= settings.name_threshold < 1.0:
        raise ValueError(
            f"name_threshold must be in [0, 1), got {settings.name_threshold}. Config file used: {cfg_path}"
        )
    return settings
