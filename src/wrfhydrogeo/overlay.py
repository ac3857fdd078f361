# pyright: reportMissingImports=false, reportUnknownMemberType=false, reportUnknownArgumentType=false

"""Point-in-polygon queries and polygon rasterization on model grids."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union, cast

import dask
import numpy as np
import pandas as pd
import xarray as xr
from dask.delayed import Delayed, delayed  # type: ignore[assignment]
from rasterio import features

from .config import GeogridConfig, get_config
from .polygons import NO_POLYGON, PolygonLayer, resolve_polygon_layer
from .projection import get_geogrid_spatial_info, make_transformer
from .raster import RasterLayer
from .types import GridDescriptor, PointSet, RasterizeMode
from .typing import PathInput

logger = logging.getLogger(__name__)

__all__ = [
    "get_poly",
    "get_rfc",
    "get_time_zone",
    "locate_points",
    "poly_to_coverage",
    "poly_to_raster",
]


# Point queries


def _delayed_call(func: Callable[..., Any], *args: Any) -> Delayed:
    """Typed helper around ``dask.delayed`` to satisfy static analysis."""

    return cast(Delayed, delayed(func)(*args))


def locate_points(
    layer: PolygonLayer,
    points: PointSet,
    parallel: bool = False,
    chunk_size: Optional[int] = None,
) -> np.ndarray:
    """
    Return the index of the first polygon containing each point, ``-1`` for none.

    Points are transformed into the layer's CRS before any containment test.
    With ``parallel`` the points are split into chunks evaluated as dask
    tasks on the threaded scheduler; results keep the input order.
    """
    lon, lat = points.as_arrays()
    if lon.size == 0:
        return np.empty(0, dtype=np.int64)

    transformer = make_transformer(points.crs, layer.crs)
    x, y = transformer.transform(lon, lat)
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)

    step = chunk_size or get_config().chunk_size
    if not parallel or lon.size <= step:
        return layer.locate(x, y)

    layer.tree  # build the spatial index once, before fanning out
    tasks = [
        _delayed_call(layer.locate, x[start:start + step], y[start:start + step])
        for start in range(0, lon.size, step)
    ]
    logger.debug(f"Locating {lon.size} points in {len(tasks)} parallel chunks")
    chunks = dask.compute(*tasks, scheduler="threads")
    return np.concatenate(chunks)


def get_poly(
    points: pd.DataFrame,
    polygon: Optional[Union[PolygonLayer, Any]] = None,
    polygon_address: Optional[PathInput] = None,
    polygon_shape_file: Optional[str] = None,
    join: Optional[str] = None,
    source_crs: Optional[str] = None,
    parallel: bool = False,
    column: Optional[str] = None,
    lon_col: Optional[str] = None,
    lat_col: Optional[str] = None,
    config: Optional[GeogridConfig] = None,
) -> pd.DataFrame:
    """
    Attach an attribute of the polygon containing each point.

    Args:
        points: Table with longitude and latitude columns
        polygon: In-memory PolygonLayer or GeoDataFrame, or a vector file path
        polygon_address: Directory holding ``polygon_shape_file`` (alternative to ``polygon``)
        polygon_shape_file: Layer name inside ``polygon_address``
        join: Polygon attribute to return
        source_crs: Coordinate system of the points (default: WGS84)
        parallel: Evaluate chunks of points concurrently
        column: Output column name (default: ``join``)
        lon_col: Longitude column name
        lat_col: Latitude column name
        config: Optional configuration

    Returns:
        Copy of ``points`` with the joined attribute; missing where no polygon
        contains the point

    Raises:
        ValueError: If ``join`` is not given or is not an attribute of the layer
        EmptyInputError: If the polygon layer holds no polygons
        ProjectionMismatchError: If points cannot be transformed to the layer CRS
    """
    if join is None:
        raise ValueError("join must name the polygon attribute to return")

    cfg = get_config(config)
    layer = resolve_polygon_layer(polygon, polygon_address, polygon_shape_file)
    values = layer.attribute(join).to_numpy()

    point_set = PointSet.from_frame(
        points, crs=source_crs or cfg.source_crs, lon_col=lon_col, lat_col=lat_col, config=cfg
    )
    idx = locate_points(layer, point_set, parallel=parallel, chunk_size=cfg.chunk_size)

    found = idx != NO_POLYGON
    joined = pd.Series(values[np.where(found, idx, 0)], index=points.index).where(found)

    result = points.copy()
    result[column or join] = joined
    logger.debug(f"Matched {int(found.sum())} of {len(idx)} points to '{join}'")
    return result


def get_rfc(
    points: pd.DataFrame,
    rfc: Union[PolygonLayer, Any],
    source_crs: Optional[str] = None,
    parallel: bool = False,
    join: str = "BASIN_ID",
    config: Optional[GeogridConfig] = None,
) -> pd.DataFrame:
    """Add the River Forecast Center ``BASIN_ID`` of each point as column ``rfc``."""

    return get_poly(
        points,
        polygon=rfc,
        join=join,
        source_crs=source_crs,
        parallel=parallel,
        column="rfc",
        config=config,
    )


def get_time_zone(
    points: pd.DataFrame,
    time_zones: Union[PolygonLayer, Any],
    source_crs: Optional[str] = None,
    parallel: bool = False,
    join: str = "TZID",
    config: Optional[GeogridConfig] = None,
) -> pd.DataFrame:
    """Add the time zone identifier (``TZID``) of each point as column ``time_zone``."""

    return get_poly(
        points,
        polygon=time_zones,
        join=join,
        source_crs=source_crs,
        parallel=parallel,
        column="time_zone",
        config=config,
    )


# Rasterization


def _burn(
    shapes: Sequence[Tuple[Any, float]],
    grid: GridDescriptor,
    fill: float,
    dtype: str = "float64",
) -> np.ndarray:
    """Burn (geometry, value) pairs at cell centres; returns south-up data."""

    if not shapes:
        return np.full(grid.shape, fill, dtype=dtype)
    burned = features.rasterize(
        shapes,
        out_shape=grid.shape,
        transform=grid.transform,
        fill=fill,
        all_touched=False,
        dtype=dtype,
    )
    return np.flipud(burned)


def _block_mean(array: np.ndarray, factor: int) -> np.ndarray:
    height, width = array.shape
    if height % factor != 0 or width % factor != 0:
        raise ValueError("array dimensions are not evenly divisible by the block factor")
    reshaped = array.reshape(height // factor, factor, width // factor, factor)
    return reshaped.mean(axis=(1, 3))


def _present(geometries: np.ndarray) -> List[Any]:
    return [geom for geom in geometries if geom is not None and not geom.is_empty]


def _coverage(geometries: Sequence[Any], grid: GridDescriptor, subcells: int) -> np.ndarray:
    """Fraction of each cell's ``subcells`` x ``subcells`` sub-cell centres inside ``geometries``."""

    fine = grid.refine(subcells)
    hits = _burn([(geom, 1) for geom in geometries], fine, fill=0, dtype="uint8")
    return _block_mean(hits.astype(np.float64), subcells)


def _categorical_codes(values: pd.Series) -> Tuple[np.ndarray, Dict[int, Any]]:
    """Numeric codes for attribute values, with the lookup back to the originals."""

    if pd.api.types.is_numeric_dtype(values) and not pd.api.types.is_bool_dtype(values):
        return values.to_numpy(dtype=float), {}

    categories = sorted(values.dropna().unique(), key=str)
    lookup = {code: value for code, value in enumerate(categories, start=1)}
    to_code = {value: code for code, value in lookup.items()}
    codes = np.array([to_code.get(value, np.nan) for value in values], dtype=float)
    return codes, lookup


def _select_geometries(layer: PolygonLayer, field: Optional[str], select: Any) -> List[Any]:
    if field is None:
        if select is not None:
            raise ValueError("select requires field")
        return _present(layer.geometries)
    attribute = layer.attribute(field)
    if select is None:
        return _present(layer.geometries)
    return _present(layer.geometries[(attribute == select).to_numpy()])


def _grid_layer(
    geo_file: PathInput,
    polygon: Optional[Union[PolygonLayer, Any]],
    polygon_address: Optional[PathInput],
    polygon_shape_file: Optional[str],
    config: GeogridConfig,
) -> Tuple[GridDescriptor, PolygonLayer]:
    grid = get_geogrid_spatial_info(geo_file, config)
    layer = resolve_polygon_layer(polygon, polygon_address, polygon_shape_file)
    projected = layer.to_crs(grid.crs)
    if not projected.bounds.intersects(grid.bounds):
        logger.warning(f"No polygon of the layer overlaps the grid of {geo_file}")
    return grid, projected


def poly_to_raster(
    geo_file: PathInput,
    polygon: Optional[Union[PolygonLayer, Any]] = None,
    polygon_address: Optional[PathInput] = None,
    polygon_shape_file: Optional[str] = None,
    field: Optional[str] = None,
    mode: Union[RasterizeMode, str] = RasterizeMode.VALUE,
    select: Any = None,
    subcells: Optional[int] = None,
    config: Optional[GeogridConfig] = None,
) -> RasterLayer:
    """
    Rasterize a polygon layer onto the grid of a geogrid file.

    Modes:
        ``value``: each cell takes ``field`` of the polygon covering its centre;
            non-numeric attributes are coded 1..n with the lookup in
            ``RasterLayer.attributes``
        ``mask``: cells whose centre is covered by any polygon get the mask
            value, all others nodata
        ``fraction``: fraction of ``subcells`` x ``subcells`` sub-cell centres
            covered by the polygons of interest (all polygons, or those whose
            ``field`` equals ``select``)

    When polygons overlap, the first in layer order wins.

    Args:
        geo_file: Geogrid file defining the grid
        polygon: In-memory PolygonLayer or GeoDataFrame, or a vector file path
        polygon_address: Directory holding ``polygon_shape_file``
        polygon_shape_file: Layer name inside ``polygon_address``
        field: Polygon attribute to burn (required in value mode)
        mode: One of ``value``, ``mask``, ``fraction``
        select: Attribute value picking the polygons of interest in fraction mode
        subcells: Sub-cells per cell edge in fraction mode (default 10)
        config: Optional configuration

    Returns:
        RasterLayer on the geogrid
    """
    cfg = get_config(config)
    mode = RasterizeMode(mode)
    grid, layer = _grid_layer(geo_file, polygon, polygon_address, polygon_shape_file, cfg)

    attributes: Dict[int, Any] = {}
    if mode is RasterizeMode.VALUE:
        if field is None:
            raise ValueError("field is required in value mode")
        codes, attributes = _categorical_codes(layer.attribute(field))
        shapes = [
            (geom, code)
            for geom, code in zip(layer.geometries, codes)
            if geom is not None and not geom.is_empty and np.isfinite(code)
        ]
        # Later shapes overwrite earlier ones; reverse so the first polygon wins
        data = _burn(shapes[::-1], grid, fill=cfg.nodata)
        name = field
    elif mode is RasterizeMode.MASK:
        shapes = [(geom, cfg.mask_value) for geom in _present(layer.geometries)]
        data = _burn(shapes, grid, fill=cfg.nodata)
        name = "mask"
    else:
        geometries = _select_geometries(layer, field, select)
        data = _coverage(geometries, grid, subcells or cfg.subcells)
        name = f"{field}={select}" if select is not None else "coverage"

    logger.debug(f"Rasterized {len(layer)} polygons onto {grid.nx}x{grid.ny} grid in {mode.value} mode")
    return RasterLayer(data=data, grid=grid, nodata=cfg.nodata, name=name, attributes=attributes)


def poly_to_coverage(
    geo_file: PathInput,
    polygon: Optional[Union[PolygonLayer, Any]] = None,
    polygon_address: Optional[PathInput] = None,
    polygon_shape_file: Optional[str] = None,
    field: Optional[str] = None,
    subcells: Optional[int] = None,
    config: Optional[GeogridConfig] = None,
) -> xr.DataArray:
    """
    Fractional coverage of every cell by each distinct value of ``field``.

    Returns:
        DataArray with dims ``("polygon", "y", "x")``; ``polygon`` holds the
        attribute values and ``y`` runs south to north
    """
    if field is None:
        raise ValueError("field is required to split coverage by polygon")

    cfg = get_config(config)
    factor = subcells or cfg.subcells
    grid, layer = _grid_layer(geo_file, polygon, polygon_address, polygon_shape_file, cfg)

    attribute = layer.attribute(field)
    labels = sorted(attribute.dropna().unique(), key=str)
    planes = [
        _coverage(_present(layer.geometries[(attribute == label).to_numpy()]), grid, factor)
        for label in labels
    ]
    stack = np.stack(planes) if planes else np.zeros((0,) + grid.shape)

    x_coords, y_coords = grid.cell_centers()
    return xr.DataArray(
        stack,
        coords={"polygon": list(labels), "y": y_coords, "x": x_coords},
        dims=("polygon", "y", "x"),
        name=f"{field}_coverage",
        attrs={"crs": grid.proj4, "subcells": factor},
    )
