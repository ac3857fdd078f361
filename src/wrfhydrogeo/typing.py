"""Type aliases and protocols for wrfhydrogeo."""

from os import PathLike
from typing import TypeAlias, Protocol, Tuple, Union, Any

import numpy as np

# Type aliases for better user experience
BBoxTuple: TypeAlias = Tuple[float, float, float, float]  # (min_x, min_y, max_x, max_y)
PathInput: TypeAlias = Union[str, "PathLike[str]"]
CellIndexArrays: TypeAlias = Tuple[np.ndarray, np.ndarray]  # (rows, cols)


class SupportsColumns(Protocol):
    """Anything table-like with named columns, such as a pandas DataFrame."""

    columns: Any

    def __getitem__(self, key: str) -> Any:
        ...
