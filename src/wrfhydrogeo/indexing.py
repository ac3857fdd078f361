"""Map point coordinates onto model grid cell indices."""

from __future__ import annotations

import logging
from typing import Any, List, Optional

import numpy as np
import pandas as pd

from .config import GeogridConfig, get_config
from .projection import get_geogrid_spatial_info, make_transformer
from .types import GridDescriptor, GridIndex, PointSet
from .typing import CellIndexArrays, PathInput

logger = logging.getLogger(__name__)

__all__ = ["GridIndexer", "get_geogrid_index"]

_OUTSIDE = -1


class GridIndexer:
    """Locate the grid cell holding each point of a PointSet."""

    def __init__(
        self,
        grid: GridDescriptor,
        source_crs: Optional[Any] = None,
        config: Optional[GeogridConfig] = None,
    ) -> None:
        self.grid = grid
        self.source_crs = source_crs or get_config(config).source_crs

    def cells_for_xy(self, x: np.ndarray, y: np.ndarray) -> CellIndexArrays:
        """Return (rows, cols) for projected grid coordinates, ``-1`` where outside."""

        x = np.asarray(x, dtype=float)
        y = np.asarray(y, dtype=float)
        grid = self.grid

        with np.errstate(invalid="ignore"):
            cols = np.floor((x - grid.x0) / grid.dx)
            rows = np.floor((y - grid.y0) / grid.dy)

        inside = (
            np.isfinite(cols)
            & np.isfinite(rows)
            & (cols >= 0)
            & (cols < grid.nx)
            & (rows >= 0)
            & (rows < grid.ny)
        )
        rows = np.where(inside, rows, _OUTSIDE).astype(np.int64)
        cols = np.where(inside, cols, _OUTSIDE).astype(np.int64)
        return rows, cols

    def index_arrays(self, lon: np.ndarray, lat: np.ndarray, crs: Optional[Any] = None) -> CellIndexArrays:
        """Transform source coordinates into the grid CRS and return (rows, cols)."""

        lon = np.asarray(lon, dtype=float)
        lat = np.asarray(lat, dtype=float)
        if lon.size == 0:
            empty = np.empty(0, dtype=np.int64)
            return empty, empty.copy()

        transformer = make_transformer(crs or self.source_crs, self.grid.crs)
        x, y = transformer.transform(lon, lat)
        # Points PROJ cannot transform come back non-finite and index as outside
        return self.cells_for_xy(x, y)

    def index(self, points: PointSet) -> List[GridIndex]:
        """Return one GridIndex per point, in input order."""

        lon, lat = points.as_arrays()
        rows, cols = self.index_arrays(lon, lat, crs=points.crs)
        result = [
            GridIndex(row=int(row), col=int(col)) if row != _OUTSIDE else GridIndex.outside()
            for row, col in zip(rows, cols)
        ]
        outside = int(np.count_nonzero(rows == _OUTSIDE))
        if outside:
            logger.debug(f"{outside} of {len(result)} points fall outside the {self.grid.nx}x{self.grid.ny} grid")
        return result


def get_geogrid_index(
    points: pd.DataFrame,
    geo_file: PathInput,
    source_crs: Optional[str] = None,
    one_based: bool = False,
    lon_col: Optional[str] = None,
    lat_col: Optional[str] = None,
    config: Optional[GeogridConfig] = None,
) -> pd.DataFrame:
    """
    Add the geogrid cell index of every point to a copy of ``points``.

    Args:
        points: Table with longitude and latitude columns
        geo_file: Geogrid file defining the grid
        source_crs: Coordinate system of the points (default: WGS84)
        one_based: Number rows and columns from 1 instead of 0
        lon_col: Longitude column name (default: first of ``longitude``/``lon``)
        lat_col: Latitude column name (default: first of ``latitude``/``lat``)
        config: Optional configuration

    Returns:
        Copy of ``points`` with nullable ``row`` and ``col`` columns; ``<NA>``
        marks points outside the grid
    """
    cfg = get_config(config)
    crs = source_crs or cfg.source_crs
    grid = get_geogrid_spatial_info(geo_file, cfg)
    point_set = PointSet.from_frame(points, crs=crs, lon_col=lon_col, lat_col=lat_col, config=cfg)

    indexer = GridIndexer(grid, source_crs=crs, config=cfg)
    rows, cols = indexer.index_arrays(*point_set.as_arrays(), crs=crs)

    offset = 1 if one_based else 0
    outside = rows == _OUTSIDE
    row_values = pd.array(rows + offset, dtype="Int64")
    col_values = pd.array(cols + offset, dtype="Int64")
    row_values[outside] = pd.NA
    col_values[outside] = pd.NA

    result = points.copy()
    result["row"] = row_values
    result["col"] = col_values
    return result
