"""
═══════════════════════════════════════════════════════════════════════════════
📋 UNIFIED CONFIGURATION TYPES
═══════════════════════════════════════════════════════════════════════════════

ARCHITECTURAL OVERVIEW
----------------------
Responsibility: Define all configuration dataclasses for the grid engine.
Replaces scattered CONFIG dictionary access with typed, validated config objects.

Usage:
    from mgrs_graticule.config import CONFIG
    from mgrs_graticule.config_types import AppConfig

    # Create once at application startup
    app_config = AppConfig.from_dict(CONFIG)

    # Use throughout the application
    samples = app_config.generation.samples_for(10000)

For Navigation: Use VS Code outline (Ctrl+Shift+O)

NAVIGATION GUIDE
----------------
# ═════ 1. FILE PATHS CONFIGURATION
# ═════ 2. GENERATION CONFIGURATION
# ═════ 3. VIEWPORT CONFIGURATION
# ═════ 4. PARALLEL PROCESSING CONFIGURATION
# ═════ 5. LOGGING CONFIGURATION
# ═════ 6. APP CONFIG (MASTER FACADE)

═══════════════════════════════════════════════════════════════════════════════
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Tuple

VALID_BACKENDS = ("loky", "process", "thread")


# ═══════════════════════════════════════════════════════════════════════════════
# 📁 1. FILE PATHS CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class FilePathsConfig:
    """
    File path configuration for inputs and outputs.

    Attributes:
        zone_asset: Optional GeoJSON file holding the zone boundary set.
        output_dir: Directory for exported GeoJSON.
        log_dir: Directory for log files.
    """

    zone_asset: str = ""
    output_dir: str = "Output"
    log_dir: str = "logs"

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "FilePathsConfig":
        """Create FilePathsConfig from CONFIG['file_paths'] dictionary."""
        return cls(
            zone_asset=d.get("zone_asset", ""),
            output_dir=d.get("output_dir", "Output"),
            log_dir=d.get("log_dir", "logs"),
        )

    @property
    def output_path(self) -> Path:
        """Get output directory as relative Path object."""
        return Path(self.output_dir)

    @property
    def log_path(self) -> Path:
        """Get log directory as relative Path object."""
        return Path(self.log_dir)


# ═══════════════════════════════════════════════════════════════════════════════
# 🔲 2. GENERATION CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class GenerationConfig:
    """
    Edge sampling and sliver settings for the cell generator.

    samples_per_edge is stored as a tuple of (cell_size_m, samples) pairs so
    the dataclass stays hashable.
    """

    min_area_deg2: float = 1e-8
    samples_per_edge: Tuple[Tuple[int, int], ...] = ((10000, 10), (100000, 20))
    default_samples_per_edge: int = 8
    min_samples_per_edge: int = 8
    max_samples_per_edge: int = 20
    hundred_km_cell_m: int = 100000
    ten_km_cell_m: int = 10000

    def __post_init__(self) -> None:
        if self.min_area_deg2 <= 0:
            raise ValueError(f"min_area_deg2 must be > 0, got {self.min_area_deg2}")
        if self.min_samples_per_edge < 2:
            raise ValueError("min_samples_per_edge must be at least 2")
        if self.max_samples_per_edge < self.min_samples_per_edge:
            raise ValueError("max_samples_per_edge must be >= min_samples_per_edge")

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "GenerationConfig":
        """Create GenerationConfig from CONFIG['generation'] dictionary."""
        samples = d.get("samples_per_edge", {100000: 20, 10000: 10})
        return cls(
            min_area_deg2=float(d.get("min_area_deg2", 1e-8)),
            samples_per_edge=tuple(
                sorted((int(k), int(v)) for k, v in samples.items())
            ),
            default_samples_per_edge=int(d.get("default_samples_per_edge", 8)),
            min_samples_per_edge=int(d.get("min_samples_per_edge", 8)),
            max_samples_per_edge=int(d.get("max_samples_per_edge", 20)),
            hundred_km_cell_m=int(d.get("hundred_km_cell_m", 100000)),
            ten_km_cell_m=int(d.get("ten_km_cell_m", 10000)),
        )

    def samples_for(self, cell_size_m: int) -> int:
        """Samples per edge for a cell size, clamped to [min, max]."""
        samples = dict(self.samples_per_edge).get(
            cell_size_m, self.default_samples_per_edge
        )
        return max(
            self.min_samples_per_edge, min(self.max_samples_per_edge, samples)
        )


# ═══════════════════════════════════════════════════════════════════════════════
# 🔭 3. VIEWPORT CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ViewportConfig:
    """Zoom thresholds and retry policy for the viewport controller."""

    hundred_km_min_zoom: float = 5
    ten_km_min_zoom: float = 8
    max_attempts_per_key: int = 0

    def __post_init__(self) -> None:
        if self.ten_km_min_zoom < self.hundred_km_min_zoom:
            raise ValueError(
                "ten_km_min_zoom must not be below hundred_km_min_zoom "
                f"({self.ten_km_min_zoom} < {self.hundred_km_min_zoom})"
            )
        if self.max_attempts_per_key < 0:
            raise ValueError("max_attempts_per_key must be >= 0")

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ViewportConfig":
        """Create ViewportConfig from CONFIG['viewport'] dictionary."""
        return cls(
            hundred_km_min_zoom=d.get("hundred_km_min_zoom", 5),
            ten_km_min_zoom=d.get("ten_km_min_zoom", 8),
            max_attempts_per_key=int(d.get("max_attempts_per_key", 0)),
        )


# ═══════════════════════════════════════════════════════════════════════════════
# ⚡ 4. PARALLEL PROCESSING CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class ParallelConfig:
    """Worker pool settings for the generation dispatcher."""

    pool_size: int = 4
    backend: str = "loky"
    poll_interval_s: float = 0.05
    run_timeout_s: float = 120.0

    def __post_init__(self) -> None:
        if self.pool_size < 1:
            raise ValueError(f"pool_size must be >= 1, got {self.pool_size}")
        if self.backend not in VALID_BACKENDS:
            raise ValueError(
                f"backend must be one of {VALID_BACKENDS}, got {self.backend!r}"
            )

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ParallelConfig":
        """Create ParallelConfig from CONFIG['parallel'] dictionary."""
        return cls(
            pool_size=int(d.get("pool_size", 4)),
            backend=d.get("backend", "loky"),
            poll_interval_s=float(d.get("poll_interval_s", 0.05)),
            run_timeout_s=float(d.get("run_timeout_s", 120.0)),
        )


# ═══════════════════════════════════════════════════════════════════════════════
# 📋 5. LOGGING CONFIGURATION
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class LoggingConfig:
    """Log level and file output toggle."""

    level: str = "INFO"
    log_to_file: bool = True

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "LoggingConfig":
        """Create LoggingConfig from CONFIG['logging'] dictionary."""
        return cls(
            level=str(d.get("level", "INFO")).upper(),
            log_to_file=bool(d.get("log_to_file", True)),
        )


# ═══════════════════════════════════════════════════════════════════════════════
# 🎯 6. APP CONFIG (MASTER FACADE)
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class AppConfig:
    """
    Master configuration facade.

    Create once at startup with AppConfig.from_dict(CONFIG) and pass it to
    create_grid_context(); every component reads its own section.
    """

    generation: GenerationConfig = field(default_factory=GenerationConfig)
    viewport: ViewportConfig = field(default_factory=ViewportConfig)
    parallel: ParallelConfig = field(default_factory=ParallelConfig)
    file_paths: FilePathsConfig = field(default_factory=FilePathsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "AppConfig":
        """Build the facade from the master CONFIG dictionary."""
        return cls(
            generation=GenerationConfig.from_dict(config.get("generation", {})),
            viewport=ViewportConfig.from_dict(config.get("viewport", {})),
            parallel=ParallelConfig.from_dict(config.get("parallel", {})),
            file_paths=FilePathsConfig.from_dict(config.get("file_paths", {})),
            logging=LoggingConfig.from_dict(config.get("logging", {})),
        )
