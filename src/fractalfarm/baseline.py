"""Single-process reference render."""

from __future__ import annotations

import numpy as np

from .computation import allocate_image, compute_rows
from .config import RenderConfig


def compute_reference(config: RenderConfig) -> np.ndarray:
    """Render the whole canvas in one pass, without chunking or messaging."""
    image = allocate_image(config)
    compute_rows(config, 0, config.height, image)
    return image
