"""Stable constants shared across inferret modules."""

from __future__ import annotations

from typing import Final

# Inferfile defaults.
DEFAULT_INFERFILE: Final[str] = "Inferfile"
ENV_PREFIX: Final[str] = "INFER_"

# Source region markers.
START_MARKER_PREFIX: Final[str] = "Infer: "
END_MARKER_PREFIX: Final[str] = "EndInfer: "

# Inference defaults applied when the Inferfile omits a field.
DEFAULT_COUNT: Final[int] = 1
DEFAULT_THRESHOLD: Final[float] = 1.0
DEFAULT_MAX_TOKENS: Final[int] = 0
DEFAULT_TEMPERATURE: Final[float] = 1.0

# Success rates are compared against thresholds at percentage-point resolution.
THRESHOLD_PRECISION: Final[int] = 2

# Oracle defaults.
DEFAULT_OPENAI_API_URL: Final[str] = "https://api.openai.com/v1"
DEFAULT_API_KEY_ENV: Final[str] = "OPENAI_API_KEY"
DEFAULT_PARALLEL_THREADS: Final[int] = 1
DEFAULT_MAX_RETRIES: Final[int] = 2
DEFAULT_TIMEOUT_SECONDS: Final[float] = 60.0

__all__ = [
    "DEFAULT_API_KEY_ENV",
    "DEFAULT_COUNT",
    "DEFAULT_INFERFILE",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_MAX_TOKENS",
    "DEFAULT_OPENAI_API_URL",
    "DEFAULT_PARALLEL_THREADS",
    "DEFAULT_TEMPERATURE",
    "DEFAULT_THRESHOLD",
    "DEFAULT_TIMEOUT_SECONDS",
    "END_MARKER_PREFIX",
    "ENV_PREFIX",
    "START_MARKER_PREFIX",
    "THRESHOLD_PRECISION",
]
