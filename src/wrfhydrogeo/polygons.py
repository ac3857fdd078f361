"""Read-only polygon layers with attribute tables."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Iterable, Optional, Union

import geopandas as gpd
import numpy as np
import pandas as pd
import shapely
from pyproj import CRS
from pyproj.exceptions import CRSError
from shapely.strtree import STRtree

from .errors import EmptyInputError, FileFormatError, GeoFileNotFoundError, ProjectionMismatchError
from .projection import make_transformer
from .types import BoundingBox
from .typing import PathInput

logger = logging.getLogger(__name__)

__all__ = ["PolygonLayer", "load_polygon_layer", "resolve_polygon_layer"]

NO_POLYGON = -1


class PolygonLayer:
    """Polygons, their attribute table and the coordinate system they are expressed in."""

    def __init__(
        self,
        geometries: Iterable[Any],
        records: Optional[Union[pd.DataFrame, Iterable[dict]]] = None,
        crs: Optional[Any] = None,
    ) -> None:
        geoms = np.asarray(list(geometries), dtype=object)
        if geoms.size == 0:
            raise EmptyInputError("Polygon layer contains no polygons")
        if crs is None:
            raise ProjectionMismatchError("Polygon layer has no coordinate reference system")
        try:
            self.crs = CRS.from_user_input(crs)
        except CRSError as exc:
            raise ProjectionMismatchError(f"Invalid polygon layer CRS {crs!r}: {exc}", cause=exc) from exc

        if records is None:
            table = pd.DataFrame(index=pd.RangeIndex(len(geoms)))
        else:
            table = pd.DataFrame(records).reset_index(drop=True)
        if len(table) != len(geoms):
            raise ValueError(
                f"Attribute table has {len(table)} rows for {len(geoms)} polygons"
            )

        self.geometries = geoms
        self.records = table
        self._tree: Optional[STRtree] = None

    def __len__(self) -> int:
        return len(self.geometries)

    def __repr__(self) -> str:
        return f"PolygonLayer({len(self)} polygons, fields={list(self.records.columns)}, crs={self.crs.to_string()!r})"

    @classmethod
    def from_geodataframe(cls, frame: gpd.GeoDataFrame) -> "PolygonLayer":
        records = pd.DataFrame(frame.drop(columns=frame.geometry.name))
        return cls(frame.geometry.values, records=records, crs=frame.crs)

    @classmethod
    def from_file(cls, path: PathInput, layer: Optional[str] = None) -> "PolygonLayer":
        """Read a vector file (shapefile, GeoPackage, GeoJSON) with geopandas."""
        source = Path(path).expanduser()
        if not source.exists():
            raise GeoFileNotFoundError(f"Polygon source not found: {source}")
        try:
            frame = gpd.read_file(source, layer=layer) if layer else gpd.read_file(source)
        except (OSError, RuntimeError, ValueError) as exc:
            raise FileFormatError(f"Unable to read polygons from {source}: {exc}", cause=exc) from exc
        logger.debug(f"Read {len(frame)} polygons from {source}")
        return cls.from_geodataframe(frame)

    @property
    def fields(self) -> list:
        return list(self.records.columns)

    @property
    def tree(self) -> STRtree:
        if self._tree is None:
            self._tree = STRtree(self.geometries)
        return self._tree

    @property
    def bounds(self) -> BoundingBox:
        min_x, min_y, max_x, max_y = shapely.total_bounds(self.geometries)
        return BoundingBox(min_x=min_x, min_y=min_y, max_x=max_x, max_y=max_y, crs=self.crs.to_string())

    def attribute(self, name: str) -> pd.Series:
        if name not in self.records.columns:
            raise ValueError(f"Polygon layer has no attribute '{name}'; available: {self.fields}")
        return self.records[name]

    def to_crs(self, crs: Any) -> "PolygonLayer":
        """Return a copy with every vertex transformed into ``crs``."""
        target = CRS.from_user_input(crs)
        if target == self.crs:
            return self

        transformer = make_transformer(self.crs, target)

        def _project(coords: np.ndarray) -> np.ndarray:
            x, y = transformer.transform(coords[:, 0], coords[:, 1])
            return np.column_stack([x, y])

        projected = shapely.transform(self.geometries, _project)
        present = ~(shapely.is_missing(projected) | shapely.is_empty(projected))
        if not np.isfinite(shapely.bounds(projected[present])).all():
            raise ProjectionMismatchError(f"Polygons could not be transformed into {target.to_string()}")
        return PolygonLayer(projected, records=self.records, crs=target)

    def locate(self, x: np.ndarray, y: np.ndarray) -> np.ndarray:
        """
        Return, for each point in this layer's CRS, the index of the first polygon containing it.

        Points on a polygon boundary count as contained. ``NO_POLYGON`` marks
        points inside no polygon.
        """
        x = np.asarray(x, dtype=float)
        y = np.asarray(y, dtype=float)
        result = np.full(x.shape, NO_POLYGON, dtype=np.int64)

        finite = np.flatnonzero(np.isfinite(x) & np.isfinite(y))
        if finite.size == 0:
            return result

        points = shapely.points(x[finite], y[finite])
        point_idx, poly_idx = self.tree.query(points, predicate="intersects")
        if point_idx.size == 0:
            return result

        # Lowest polygon index per point wins
        order = np.lexsort((poly_idx, point_idx))
        point_idx = point_idx[order]
        poly_idx = poly_idx[order]
        _, first = np.unique(point_idx, return_index=True)
        result[finite[point_idx[first]]] = poly_idx[first]
        return result


def load_polygon_layer(address: PathInput, shape_file: Optional[str] = None) -> PolygonLayer:
    """
    Load a polygon layer from disk.

    Args:
        address: A vector file, or a directory holding ``shape_file``
        shape_file: Layer name inside ``address``, e.g. ``"clipped_huc12"``

    Returns:
        PolygonLayer
    """
    if shape_file is None:
        return PolygonLayer.from_file(address)

    directory = Path(address).expanduser()
    candidate = directory / shape_file
    if candidate.suffix == "":
        candidate = candidate.with_suffix(".shp")
    if candidate.exists():
        return PolygonLayer.from_file(candidate)
    return PolygonLayer.from_file(directory, layer=shape_file)


def resolve_polygon_layer(
    polygon: Optional[Union[PolygonLayer, gpd.GeoDataFrame, PathInput]] = None,
    polygon_address: Optional[PathInput] = None,
    polygon_shape_file: Optional[str] = None,
) -> PolygonLayer:
    """Return a PolygonLayer from an in-memory layer, a GeoDataFrame or a location on disk."""
    if isinstance(polygon, PolygonLayer):
        return polygon
    if isinstance(polygon, gpd.GeoDataFrame):
        return PolygonLayer.from_geodataframe(polygon)
    if polygon is not None:
        return load_polygon_layer(polygon, polygon_shape_file)
    if polygon_address is not None:
        return load_polygon_layer(polygon_address, polygon_shape_file)
    raise ValueError("Provide either polygon or polygon_address")
