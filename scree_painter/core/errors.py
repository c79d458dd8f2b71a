"""Exceptions raised by scree generation."""

from typing import Optional


class ScreeError(Exception):
    """Base class for all scree painter errors."""


class ParameterFormatError(ScreeError, ValueError):
    """Parameter text is not a valid Scree Painter document."""


class MissingInputError(ScreeError, ValueError):
    """A grid required for generation has not been loaded."""


class ScreeGenerationError(ScreeError):
    """A worker failed while filling a polygon with scree."""

    def __init__(self, message: str, polygon_index: Optional[int] = None):
        super().__init__(message)
        self.polygon_index = polygon_index


class ScreeMemoryError(ScreeGenerationError):
    """Generation ran out of memory."""

    suggest_smaller_update_area = True

    def __init__(self, polygon_index: Optional[int] = None):
        super().__init__(
            "There is not enough memory available to generate the scree. "
            "Try again with a smaller update area.",
            polygon_index,
        )
