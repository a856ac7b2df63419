from typing import Optional, Tuple


class ShapeError(ValueError):
    """Base class for shape related failures.

    Attributes:
        expected: The shape that the operation required.
        found: The shape that was actually supplied.
    """

    def __init__(self, message: str, expected: Tuple[int, ...], found: Tuple[int, ...]):
        super().__init__(message)
        self.expected = tuple(expected)
        self.found = tuple(found)


class DimensionMismatch(ShapeError):
    """Two operands have shapes that are incompatible for the requested operation.

    Raised before the offending matrix operation is attempted, so no
    broadcasting, truncation or padding ever happens silently.
    """

    def __init__(
        self,
        expected: Tuple[int, ...],
        found: Tuple[int, ...],
        layer: Optional[int] = None,
        operation: Optional[str] = None,
    ):
        self.layer = layer
        self.operation = operation
        where = f"Layer {layer}: " if layer is not None else ""
        what = f" in {operation}" if operation else ""
        super().__init__(
            f"{where}dimension mismatch{what}: expected {tuple(expected)}, found {tuple(found)}",
            expected,
            found,
        )


class MismatchedDimensions(ShapeError):
    """Replacement parameters do not match the shape of the existing layer."""

    def __init__(self, expected: Tuple[int, ...], found: Tuple[int, ...]):
        super().__init__(
            f"mismatched dimensions: expected {tuple(expected)}, found {tuple(found)}",
            expected,
            found,
        )
