"""Configuration objects and YAML loading for fractal render runs."""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from itertools import product
from pathlib import Path
from typing import Dict, Iterable, List, Tuple

import yaml


@dataclass(frozen=True)
class RenderConfig:
    """Canvas and scheduling parameters for a single render.

    Every rank builds the same instance from the same arguments, so the
    canvas is effectively broadcast by value and never mutated afterwards.
    """

    n_ranks: int
    chunk_size: int
    width: int
    height: int
    center_x: float = -1.186340599860225
    center_y: float = -0.303652988644423
    zoom: float = 1000.0  # pixels per unit of the complex plane
    max_iter: int = 300
    hue_per_iteration: float = 5.0
    output: str = "fractal.bmp"

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Canvas must be non-empty, got {self.width}x{self.height}")
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.n_ranks <= 0:
            raise ValueError(f"n_ranks must be positive, got {self.n_ranks}")
        if self.max_iter < 0:
            raise ValueError(f"max_iter must be non-negative, got {self.max_iter}")
        if self.zoom == 0:
            raise ValueError("zoom must be non-zero")

    @property
    def total_chunks(self) -> int:
        return (self.height + self.chunk_size - 1) // self.chunk_size

    @property
    def image_size(self) -> str:
        return f"{self.width}x{self.height}"

    @property
    def run_name(self) -> str:
        """Unique run name embedding the scheduling parameters."""
        return f"farm_n{self.n_ranks}_c{self.chunk_size}_{self.image_size}_it{self.max_iter}"

    def to_dict(self) -> dict:
        """Convert to dictionary for MLflow logging."""
        return asdict(self)

    def to_cli_args(self) -> List[str]:
        """Convert config to ``main.py`` arguments."""
        args = [
            f"--n-ranks={self.n_ranks}",
            f"--chunk-size={self.chunk_size}",
            f"--image-size={self.image_size}",
            f"--zoom={self.zoom!r}",
            f"--max-iter={self.max_iter}",
            f"--hue-per-iteration={self.hue_per_iteration!r}",
            f"--output={self.output}",
            "--center",
            repr(self.center_x),
            repr(self.center_y),
        ]
        return args


DEFAULT_RENDER_CONFIG = RenderConfig(
    n_ranks=4,
    chunk_size=100,
    width=400,
    height=400,
)


def default_render_config(**overrides: object) -> RenderConfig:
    """Return the canonical default config optionally overridden with kwargs."""
    return replace(DEFAULT_RENDER_CONFIG, **_coerce_fields(overrides))


def load_sweep_configs(yaml_path: str | Path) -> List[RenderConfig]:
    """Load a sweep file and expand every suite into a flat list of configs."""
    return [cfg for _, configs in load_named_sweep_configs(yaml_path) for cfg in configs]


def get_config_by_index(yaml_path: str | Path, index: int) -> RenderConfig:
    """Get a specific config by index from sweep."""
    configs = load_sweep_configs(yaml_path)
    if index < 0 or index >= len(configs):
        raise ValueError(f"Config index {index} out of range [0, {len(configs) - 1}]")
    return configs[index]


def load_named_sweep_configs(
    yaml_path: str | Path,
    suite: str | None = None,
) -> List[tuple[str, List[RenderConfig]]]:
    """Load ``(suite name, configs)`` pairs from a sweep file.

    A file either carries a single top-level ``sweep`` or a list of named
    ``experiments``, each with its own ``defaults`` and ``sweep``.
    """
    with open(yaml_path) as f:
        cfg = yaml.safe_load(f) or {}

    defaults: Dict[str, object] = cfg.get("defaults", {}) or {}
    experiments = cfg.get("experiments")
    results: List[tuple[str, List[RenderConfig]]] = []

    if experiments:
        for exp in experiments:
            name = exp.get("name")
            if not name or (suite and name != suite):
                continue
            exp_defaults = {**defaults, **(exp.get("defaults", {}) or {})}
            results.append((name, _expand_sweep(exp_defaults, exp.get("sweep") or {})))
        if suite and not results:
            raise ValueError(f"Suite '{suite}' not found in {yaml_path}")
        return results

    label = cfg.get("name") or Path(yaml_path).stem
    return [(label, _expand_sweep(defaults, cfg.get("sweep", {}) or {}))]


def parse_image_size(value: str) -> Tuple[int, int]:
    width_str, height_str = value.lower().split("x")
    return int(width_str.strip()), int(height_str.strip())


def parse_pair(value: str) -> Tuple[float, float]:
    first, second = value.split(":")
    return float(first), float(second)


def _expand_sweep(defaults: Dict[str, object], sweep: Dict[str, object]) -> List[RenderConfig]:
    """Cartesian product of every swept parameter, then of the image shapes."""
    param_grid = {k: v for k, v in sweep.items() if k != "image_shape"}
    shape_options = sweep.get("image_shape")

    keys = list(param_grid.keys())
    configs: List[RenderConfig] = []
    for combo in product(*[param_grid[k] for k in keys]):
        data = {**defaults, **dict(zip(keys, combo))}
        configs.extend(_expand_shapes(data, shape_options))
    return configs


def _expand_shapes(base: Dict[str, object], shape_options: object) -> List[RenderConfig]:
    if not shape_options:
        return [_build_render_config(base)]

    shapes: Iterable[Tuple[int, int]]
    if isinstance(shape_options, list):
        shapes = [_normalize_shape_entry(opt) for opt in shape_options]
    else:
        shapes = [_normalize_shape_entry(shape_options)]

    return [_build_render_config({**base, "width": w, "height": h}) for w, h in shapes]


def _build_render_config(raw_data: Dict[str, object]) -> RenderConfig:
    data = {**_required_defaults(), **_coerce_fields(raw_data)}
    return RenderConfig(**data)  # type: ignore[arg-type]


def _required_defaults() -> Dict[str, object]:
    return {
        "n_ranks": DEFAULT_RENDER_CONFIG.n_ranks,
        "chunk_size": DEFAULT_RENDER_CONFIG.chunk_size,
        "width": DEFAULT_RENDER_CONFIG.width,
        "height": DEFAULT_RENDER_CONFIG.height,
    }


def _coerce_fields(data: Dict[str, object]) -> Dict[str, object]:
    result = dict(data)
    for key in ("image_size", "image_shape"):
        shape = result.pop(key, None)
        if shape is not None:
            width, height = _normalize_shape_entry(shape)
            result.setdefault("width", width)
            result.setdefault("height", height)
    center = result.pop("center", None)
    if center is not None:
        cx, cy = parse_pair(center) if isinstance(center, str) else center
        result.setdefault("center_x", cx)
        result.setdefault("center_y", cy)
    for key in ("n_ranks", "chunk_size", "width", "height", "max_iter"):
        if key in result:
            result[key] = int(result[key])
    for key in ("center_x", "center_y", "zoom", "hue_per_iteration"):
        if key in result:
            result[key] = float(result[key])
    return result


def _normalize_shape_entry(entry: object) -> Tuple[int, int]:
    if isinstance(entry, dict):
        width = entry.get("width")
        height = entry.get("height")
        if width is None or height is None:
            raise ValueError("image_shape dict must include 'width' and 'height'")
        return int(width), int(height)
    if isinstance(entry, (list, tuple)) and len(entry) == 2:
        return int(entry[0]), int(entry[1])
    if isinstance(entry, str):
        return parse_image_size(entry)
    raise ValueError(f"Unsupported image shape specification: {entry!r}")
