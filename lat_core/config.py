"""
Lateration core configuration.

Module-level settings shared by the geometry, linear algebra and
localization layers. Per-solver parameters live in each solver's
config dataclass.
"""

import logging
import os
from typing import Optional

# Logging configuration
LOGGING_CONFIG = {
    "level": os.environ.get("LAT_CORE_LOG_LEVEL", "WARNING"),
    "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}

# Numeric tolerances
NUMERIC_CONFIG = {
    "singular_tol": 1e-12,    # relative pivot/determinant threshold
    "circle_tol": 0.01,       # slack for point-in-circle tests (m)
    "agreement_tol": 0.1,     # intersection points closer than this agree (m)
}


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure root logging from LOGGING_CONFIG.

    Args:
        level: Level name overriding LOGGING_CONFIG["level"] (e.g. "DEBUG")
    """
    level_name = (level or LOGGING_CONFIG["level"]).upper()
    numeric_level = getattr(logging, level_name, None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level_name}")

    logging.basicConfig(level=numeric_level, format=LOGGING_CONFIG["format"])
    logging.getLogger("lat_core").setLevel(numeric_level)
