"""Region extraction exports."""

from inferret.extraction.regions import (
    ExtractionError,
    MarkerMatching,
    RegionReadError,
    UnterminatedRegionError,
    end_marker,
    extract_regions,
    resolve_configuration,
    start_marker,
)

__all__ = [
    "ExtractionError",
    "MarkerMatching",
    "RegionReadError",
    "UnterminatedRegionError",
    "end_marker",
    "extract_regions",
    "resolve_configuration",
    "start_marker",
]
