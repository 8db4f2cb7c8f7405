from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
load_dotenv(Path(__file__).resolve().parent.parent.parent / ".env")


@dataclass(frozen=True)
class EngineConfig:
    source_timeout: float = float(os.getenv("SOURCE_TIMEOUT_SECONDS", "2.0"))
    max_workers: int = int(os.getenv("SOURCE_MAX_WORKERS", "8"))
    margin_threshold: float = float(os.getenv("MARGIN_BOOST_THRESHOLD", "25"))
    length_ceiling: int = int(os.getenv("SUGGESTION_LENGTH_CEILING", "50"))
    cache_enabled: bool = os.getenv("RESULT_CACHE_ENABLED", "true").lower() != "false"


DEFAULT_ENGINE_CONFIG = EngineConfig()
