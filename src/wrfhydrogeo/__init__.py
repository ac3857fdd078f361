"""wrfhydrogeo - spatial helpers for WRF-Hydro grids, rasters and polygons."""

from ._version import __version__

from .config import DEFAULT_CONFIG, GeogridConfig
from .errors import (
    EmptyInputError,
    FileFormatError,
    GeoFileNotFoundError,
    ProjectionMismatchError,
    VariableNotFoundError,
    WrfHydroGeoError,
)
from .export import export_geogrid, read_variable
from .indexing import GridIndexer, get_geogrid_index
from .overlay import get_poly, get_rfc, get_time_zone, locate_points, poly_to_coverage, poly_to_raster
from .polygons import PolygonLayer, load_polygon_layer
from .projection import get_geogrid_spatial_info, get_proj, read_grid_descriptor
from .raster import RasterLayer, read_raster
from .types import (
    BoundingBox,
    GridDescriptor,
    GridIndex,
    PointSet,
    ProjectionType,
    RasterizeMode,
)

__all__ = [
    "__version__",
    "DEFAULT_CONFIG",
    "GeogridConfig",
    "EmptyInputError",
    "FileFormatError",
    "GeoFileNotFoundError",
    "ProjectionMismatchError",
    "VariableNotFoundError",
    "WrfHydroGeoError",
    "export_geogrid",
    "read_variable",
    "GridIndexer",
    "get_geogrid_index",
    "get_poly",
    "get_rfc",
    "get_time_zone",
    "locate_points",
    "poly_to_coverage",
    "poly_to_raster",
    "PolygonLayer",
    "load_polygon_layer",
    "get_geogrid_spatial_info",
    "get_proj",
    "read_grid_descriptor",
    "RasterLayer",
    "read_raster",
    "BoundingBox",
    "GridDescriptor",
    "GridIndex",
    "PointSet",
    "ProjectionType",
    "RasterizeMode",
]
