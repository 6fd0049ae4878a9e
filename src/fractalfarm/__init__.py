"""Fractal render farm - row-band chunks farmed out over MPI."""

__version__ = "1.0.0"

# Core computation and config - lightweight, imported by MPI workers
from .computation import compute_chunk
from .config import RenderConfig, default_render_config
from .report import RenderReport
from .scheduling import ChunkGrid


# Conditional imports - only loaded when needed
def __getattr__(name):
    """Lazy loading of heavy modules."""
    if name == "run_mpi_render":
        from .mpi import run_mpi_render

        return run_mpi_render
    elif name == "run_local_render":
        from .local import run_local_render

        return run_local_render
    elif name == "load_sweep_configs":
        from .config import load_sweep_configs

        return load_sweep_configs
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "RenderConfig",
    "default_render_config",
    "compute_chunk",
    "ChunkGrid",
    "RenderReport",
    "run_mpi_render",
    "run_local_render",
    "load_sweep_configs",
]
