from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

MAX_TOC_DEPTH_ENV = "EPUBMETA_MAX_TOC_DEPTH"
DEFAULT_MAX_TOC_DEPTH = 64

logger = logging.getLogger("epubmeta.env")


def read_env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value not in {None, ""}:
        return value

    file_var = os.getenv(f"{name}_FILE")
    if not file_var:
        return default

    try:
        content = Path(file_var).read_text(encoding="utf-8")
    except OSError:
        return default
    return content.rstrip("\r\n")


def max_toc_depth() -> int:
    raw = read_env(MAX_TOC_DEPTH_ENV)
    if raw is None:
        return DEFAULT_MAX_TOC_DEPTH
    try:
        value = int(raw.strip())
    except ValueError:
        value = 0
    if value <= 0:
        logger.warning(
            "ignoring %s=%r, using default depth %d", MAX_TOC_DEPTH_ENV, raw, DEFAULT_MAX_TOC_DEPTH
        )
        return DEFAULT_MAX_TOC_DEPTH
    return value
