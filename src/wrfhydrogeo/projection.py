"""
Projection metadata readers for WPS geogrid and WRF-Hydro NetCDF files.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import numpy as np
import xarray as xr
from pyproj import Transformer
from pyproj.exceptions import CRSError, ProjError

from .config import GeogridConfig, get_config
from .errors import FileFormatError, GeoFileNotFoundError, ProjectionMismatchError
from .types import GridDescriptor, ProjectionType
from .typing import PathInput

logger = logging.getLogger(__name__)

# Index of the lower-left corner of the unstaggered grid in corner_lats/corner_lons
_UNSTAGGERED_LOWER_LEFT = 12


def open_netcdf(path: PathInput, config: Optional[GeogridConfig] = None) -> xr.Dataset:
    """
    Open a NetCDF file with xarray.

    Args:
        path: Path to the NetCDF file
        config: Optional configuration (selects the xarray engine)

    Returns:
        Lazily loaded dataset; the caller closes it

    Raises:
        GeoFileNotFoundError: If the path does not exist
        FileFormatError: If the file cannot be read as NetCDF
    """
    cfg = get_config(config)
    file_path = Path(path).expanduser()
    if not file_path.exists():
        raise GeoFileNotFoundError(f"NetCDF file not found: {file_path}")

    try:
        dataset = xr.open_dataset(
            file_path,
            engine=cfg.netcdf_engine,
            decode_times=False,
            mask_and_scale=True,
        )
    except (OSError, ValueError) as exc:
        raise FileFormatError(f"Unable to read {file_path} as NetCDF: {exc}", cause=exc) from exc

    logger.debug(f"Opened {file_path} with variables {list(dataset.data_vars)}")
    return dataset


def make_transformer(src_crs: Any, dst_crs: Any) -> Transformer:
    """Build an always-xy transformer, mapping pyproj failures to ProjectionMismatchError."""
    try:
        return Transformer.from_crs(src_crs, dst_crs, always_xy=True)
    except (CRSError, ProjError) as exc:
        raise ProjectionMismatchError(
            f"Cannot transform coordinates from {src_crs} to {dst_crs}: {exc}", cause=exc
        ) from exc


def _attr(attrs: Mapping[str, Any], name: str, required: bool = True) -> Optional[float]:
    if name not in attrs:
        if required:
            raise FileFormatError(f"Required global attribute '{name}' is missing")
        return None
    value = np.asarray(attrs[name]).ravel()
    if value.size == 0:
        raise FileFormatError(f"Global attribute '{name}' is empty")
    try:
        return float(value[0])
    except (TypeError, ValueError) as exc:
        raise FileFormatError(f"Global attribute '{name}' is not numeric: {attrs[name]!r}", cause=exc) from exc


def projection_params(attrs: Mapping[str, Any], config: Optional[GeogridConfig] = None) -> Dict[str, Any]:
    """Collect projection parameters from geogrid global attributes."""
    cfg = get_config(config)

    try:
        projection = ProjectionType.from_map_proj(_attr(attrs, "MAP_PROJ"))
    except ValueError as exc:
        raise FileFormatError(str(exc), cause=exc) from exc

    latitude_of_origin = _attr(attrs, "MOAD_CEN_LAT", required=False)
    if latitude_of_origin is None:
        latitude_of_origin = _attr(attrs, "CEN_LAT")

    if projection is ProjectionType.LAT_LON:
        pole_lat = _attr(attrs, "POLE_LAT", required=False)
        if pole_lat is not None and pole_lat != 90.0:
            raise FileFormatError("Cylindrical equidistant grids with a rotated pole are not supported")
        standard_parallel_1 = _attr(attrs, "TRUELAT1", required=False) or 0.0
    else:
        standard_parallel_1 = _attr(attrs, "TRUELAT1")

    return {
        "projection": projection,
        "standard_parallel_1": standard_parallel_1,
        "standard_parallel_2": _attr(attrs, "TRUELAT2", required=False),
        "central_meridian": _attr(attrs, "STAND_LON"),
        "latitude_of_origin": latitude_of_origin,
        "earth_radius": cfg.earth_radius,
        "dx": _attr(attrs, "DX"),
        "dy": _attr(attrs, "DY"),
    }


def _template(params: Dict[str, Any]) -> GridDescriptor:
    try:
        return GridDescriptor(**params, x0=0.0, y0=0.0, nx=1, ny=1)
    except ValueError as exc:
        raise FileFormatError(f"Invalid projection attributes: {exc}", cause=exc) from exc


def _first_plane(values: np.ndarray) -> np.ndarray:
    while values.ndim > 2:
        values = values[0]
    return values


def _find_coordinates(dataset: xr.Dataset, config: GeogridConfig) -> Optional[Tuple[np.ndarray, np.ndarray]]:
    """Return 2-D (lat, lon) arrays from the first coordinate pair present in the file."""
    for lat_name, lon_name in config.coordinate_variables:
        if lat_name in dataset.variables and lon_name in dataset.variables:
            lat = _first_plane(np.asarray(dataset[lat_name].values, dtype=float))
            lon = _first_plane(np.asarray(dataset[lon_name].values, dtype=float))
            if lat.ndim == 1 and lon.ndim == 1:
                lon, lat = np.meshgrid(lon, lat)
            if lat.shape != lon.shape or lat.ndim != 2:
                raise FileFormatError(
                    f"Coordinate variables {lat_name}/{lon_name} have mismatched shapes {lat.shape} and {lon.shape}"
                )
            logger.debug(f"Using coordinate variables {lat_name}/{lon_name}")
            return lat, lon
    return None


def grid_descriptor_from_dataset(dataset: xr.Dataset, config: Optional[GeogridConfig] = None) -> GridDescriptor:
    """Build a GridDescriptor from an open geogrid-style dataset."""
    cfg = get_config(config)
    params = projection_params(dataset.attrs, cfg)
    template = _template(params)
    to_grid = make_transformer(cfg.source_crs, template.crs)

    coords = _find_coordinates(dataset, cfg)
    if coords is not None:
        lat, lon = coords
        ny, nx = lat.shape
        x_center, y_center = to_grid.transform(lon[0, 0], lat[0, 0])
        x0 = x_center - template.dx / 2.0
        y0 = y_center - template.dy / 2.0
    else:
        attrs = dataset.attrs
        if "corner_lats" not in attrs or "corner_lons" not in attrs:
            raise FileFormatError(
                "No coordinate variables "
                f"{list(cfg.coordinate_variables)} and no corner_lats/corner_lons attributes"
            )
        corner_lats = np.asarray(attrs["corner_lats"], dtype=float).ravel()
        corner_lons = np.asarray(attrs["corner_lons"], dtype=float).ravel()
        if corner_lats.size <= _UNSTAGGERED_LOWER_LEFT or corner_lons.size <= _UNSTAGGERED_LOWER_LEFT:
            raise FileFormatError("corner_lats/corner_lons attributes are too short")
        x0, y0 = to_grid.transform(
            corner_lons[_UNSTAGGERED_LOWER_LEFT], corner_lats[_UNSTAGGERED_LOWER_LEFT]
        )
        nx = int(_attr(attrs, "WEST-EAST_GRID_DIMENSION")) - 1
        ny = int(_attr(attrs, "SOUTH-NORTH_GRID_DIMENSION")) - 1

    if not (np.isfinite(x0) and np.isfinite(y0)):
        raise ProjectionMismatchError("Grid origin could not be projected into the grid coordinate system")

    try:
        return GridDescriptor(**{**template.model_dump(), "x0": float(x0), "y0": float(y0), "nx": nx, "ny": ny})
    except ValueError as exc:
        raise FileFormatError(f"Invalid grid geometry: {exc}", cause=exc) from exc


def get_proj(geo_file: PathInput, config: Optional[GeogridConfig] = None) -> str:
    """
    Read the PROJ.4 definition of a geogrid file's coordinate system.

    Args:
        geo_file: Path to the geogrid (or any file carrying geogrid global attributes)
        config: Optional configuration

    Returns:
        PROJ.4 string on the WRF sphere

    Raises:
        GeoFileNotFoundError: If the file does not exist
        FileFormatError: If projection attributes are missing or malformed
    """
    cfg = get_config(config)
    with open_netcdf(geo_file, cfg) as dataset:
        params = projection_params(dataset.attrs, cfg)
    proj4 = _template(params).proj4
    logger.debug(f"Projection for {geo_file}: {proj4}")
    return proj4


def get_geogrid_spatial_info(geo_file: PathInput, config: Optional[GeogridConfig] = None) -> GridDescriptor:
    """
    Read projection and grid geometry from a geogrid file.

    Args:
        geo_file: Path to the geogrid file
        config: Optional configuration

    Returns:
        Immutable GridDescriptor

    Raises:
        GeoFileNotFoundError: If the file does not exist
        FileFormatError: If projection attributes or coordinates are missing
    """
    with open_netcdf(geo_file, config) as dataset:
        grid = grid_descriptor_from_dataset(dataset, config)
    logger.debug(f"Grid for {geo_file}: {grid.nx}x{grid.ny} cells of {grid.dx}x{grid.dy} m")
    return grid


read_grid_descriptor = get_geogrid_spatial_info
