"""Exceptions raised by the render farm."""

from __future__ import annotations


class FractalFarmError(Exception):
    """Base class for render farm failures."""


class AllocationFailure(FractalFarmError):
    """The master raster or a chunk buffer could not be allocated."""


class ProtocolViolation(FractalFarmError):
    """A coordinator or worker received a message it did not expect."""


class BmpFormatError(FractalFarmError, ValueError):
    """Input is not a 24-bit uncompressed BMP."""
