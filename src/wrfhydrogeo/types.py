"""
Type definitions and models for WRF-Hydro grid geometry.
"""

from typing import Any, Dict, List, Optional, Sequence, Tuple
from enum import Enum

import numpy as np
from pyproj import CRS, Transformer
from pydantic import BaseModel, ConfigDict, Field, model_validator
from rasterio.transform import Affine, from_origin

from .config import GeogridConfig, get_config
from .typing import BBoxTuple, SupportsColumns


class ProjectionType(str, Enum):
    """Map projections supported by WPS geogrid files."""
    LAMBERT_CONFORMAL = "lambert_conformal"
    POLAR_STEREOGRAPHIC = "polar_stereographic"
    MERCATOR = "mercator"
    LAT_LON = "lat_lon"

    @classmethod
    def from_map_proj(cls, code: int) -> "ProjectionType":
        """Create ProjectionType from the integer MAP_PROJ global attribute."""
        try:
            return _MAP_PROJ_CODES[int(code)]
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"Unsupported MAP_PROJ code: {code!r}") from exc

    @classmethod
    def from_proj_name(cls, name: str) -> "ProjectionType":
        """Create ProjectionType from a PROJ ``+proj=`` name."""
        try:
            return _PROJ_NAMES[name]
        except KeyError as exc:
            raise ValueError(f"Unsupported projection: {name!r}") from exc


_MAP_PROJ_CODES = {
    1: ProjectionType.LAMBERT_CONFORMAL,
    2: ProjectionType.POLAR_STEREOGRAPHIC,
    3: ProjectionType.MERCATOR,
    6: ProjectionType.LAT_LON,
}

_PROJ_NAMES = {
    "lcc": ProjectionType.LAMBERT_CONFORMAL,
    "stere": ProjectionType.POLAR_STEREOGRAPHIC,
    "merc": ProjectionType.MERCATOR,
    "eqc": ProjectionType.LAT_LON,
}


class RasterizeMode(str, Enum):
    """How polygons are burned onto a grid."""
    VALUE = "value"
    MASK = "mask"
    FRACTION = "fraction"


def _fmt(value: float) -> str:
    return f"{float(value):.10g}"


class BoundingBox(BaseModel):
    """Bounding box representation."""
    min_x: float = Field(..., description="Minimum X coordinate")
    min_y: float = Field(..., description="Minimum Y coordinate")
    max_x: float = Field(..., description="Maximum X coordinate")
    max_y: float = Field(..., description="Maximum Y coordinate")
    crs: str = Field(default="EPSG:4326", description="Coordinate Reference System")

    @model_validator(mode='after')
    def validate_coordinates(self):
        """Validate that min coordinates are less than max coordinates."""
        if self.min_x >= self.max_x:
            raise ValueError('min_x must be less than max_x')
        if self.min_y >= self.max_y:
            raise ValueError('min_y must be less than max_y')
        return self

    @classmethod
    def from_tuple(cls, bbox: BBoxTuple, crs: str = "EPSG:4326") -> "BoundingBox":
        """Create BoundingBox from tuple."""
        return cls(min_x=bbox[0], min_y=bbox[1], max_x=bbox[2], max_y=bbox[3], crs=crs)

    def as_tuple(self) -> BBoxTuple:
        return (self.min_x, self.min_y, self.max_x, self.max_y)

    def intersects(self, other: "BoundingBox") -> bool:
        """Check if this bounding box intersects with another."""
        return self.min_x <= other.max_x and self.max_x >= other.min_x and self.min_y <= other.max_y and self.max_y >= other.min_y

    def to_crs(self, crs: str) -> "BoundingBox":
        """Transform the bounding box to a new CRS, densifying the edges."""
        transformer = Transformer.from_crs(self.crs, crs, always_xy=True)
        xmin, ymin, xmax, ymax = transformer.transform_bounds(
            self.min_x, self.min_y, self.max_x, self.max_y, densify_pts=21
        )
        return BoundingBox(min_x=xmin, min_y=ymin, max_x=xmax, max_y=ymax, crs=crs)


class GridDescriptor(BaseModel):
    """Projection and geometry of a regular model grid.

    ``x0``/``y0`` are the projected coordinates of the lower-left corner of
    the lower-left cell. Row 0 is the southernmost row, matching the
    ``south_north`` storage order of WRF arrays.
    """

    model_config = ConfigDict(frozen=True)

    projection: ProjectionType = Field(..., description="Map projection family")
    standard_parallel_1: float = Field(..., description="First true latitude (TRUELAT1)")
    standard_parallel_2: Optional[float] = Field(None, description="Second true latitude (TRUELAT2)")
    central_meridian: float = Field(..., description="Standard longitude (STAND_LON)")
    latitude_of_origin: float = Field(..., description="Reference latitude (MOAD_CEN_LAT)")
    earth_radius: float = Field(6370000.0, gt=0, description="Sphere radius in metres")
    dx: float = Field(..., gt=0, description="Cell size along x in projected units")
    dy: float = Field(..., gt=0, description="Cell size along y in projected units")
    x0: float = Field(..., description="Projected x of the grid's lower-left corner")
    y0: float = Field(..., description="Projected y of the grid's lower-left corner")
    nx: int = Field(..., ge=1, description="Number of columns (west_east)")
    ny: int = Field(..., ge=1, description="Number of rows (south_north)")

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.ny, self.nx)

    @property
    def proj4(self) -> str:
        """PROJ.4 definition of the grid's coordinate system."""
        radius = _fmt(self.earth_radius)
        sphere = f"+x_0=0 +y_0=0 +a={radius} +b={radius} +units=m +no_defs"
        lon_0 = _fmt(self.central_meridian)

        if self.projection is ProjectionType.LAMBERT_CONFORMAL:
            lat_2 = self.standard_parallel_2
            if lat_2 is None:
                lat_2 = self.standard_parallel_1
            return (
                f"+proj=lcc +lat_1={_fmt(self.standard_parallel_1)} +lat_2={_fmt(lat_2)}"
                f" +lat_0={_fmt(self.latitude_of_origin)} +lon_0={lon_0} {sphere}"
            )
        if self.projection is ProjectionType.POLAR_STEREOGRAPHIC:
            pole = 90 if self.standard_parallel_1 >= 0 else -90
            return (
                f"+proj=stere +lat_0={pole} +lat_ts={_fmt(self.standard_parallel_1)}"
                f" +lon_0={lon_0} {sphere}"
            )
        if self.projection is ProjectionType.MERCATOR:
            return f"+proj=merc +lat_ts={_fmt(self.standard_parallel_1)} +lon_0={lon_0} {sphere}"
        return f"+proj=eqc +lat_ts=0 +lat_0={_fmt(self.latitude_of_origin)} +lon_0={lon_0} {sphere}"

    @property
    def crs(self) -> CRS:
        return CRS.from_proj4(self.proj4)

    @property
    def bounds(self) -> BoundingBox:
        return BoundingBox(
            min_x=self.x0,
            min_y=self.y0,
            max_x=self.x0 + self.nx * self.dx,
            max_y=self.y0 + self.ny * self.dy,
            crs=self.proj4,
        )

    @property
    def transform(self) -> Affine:
        """North-up affine transform of the grid, as written to GeoTIFF."""
        return from_origin(self.x0, self.y0 + self.ny * self.dy, self.dx, self.dy)

    def cell_centers(self) -> Tuple[np.ndarray, np.ndarray]:
        """Projected x and y coordinates of the cell centres, west-to-east and south-to-north."""
        x = self.x0 + (np.arange(self.nx) + 0.5) * self.dx
        y = self.y0 + (np.arange(self.ny) + 0.5) * self.dy
        return x, y

    def refine(self, factor: int) -> "GridDescriptor":
        """Return the same extent split into ``factor`` x ``factor`` sub-cells per cell."""
        if factor < 1:
            raise ValueError("refinement factor must be a positive integer")
        return self.model_copy(
            update={
                "dx": self.dx / factor,
                "dy": self.dy / factor,
                "nx": self.nx * factor,
                "ny": self.ny * factor,
            }
        )

    @classmethod
    def from_crs(
        cls,
        crs: Any,
        *,
        dx: float,
        dy: float,
        x0: float,
        y0: float,
        nx: int,
        ny: int,
    ) -> "GridDescriptor":
        """Rebuild a descriptor from a CRS definition and raster geometry."""
        params: Dict[str, Any] = CRS.from_user_input(crs).to_dict()
        projection = ProjectionType.from_proj_name(str(params.get("proj")))

        radius = params.get("R", params.get("a", 6370000.0))
        lat_0 = float(params.get("lat_0", 0.0))
        if projection is ProjectionType.LAMBERT_CONFORMAL:
            sp1 = float(params.get("lat_1", lat_0))
            sp2: Optional[float] = float(params.get("lat_2", sp1))
        else:
            sp1 = float(params.get("lat_ts", lat_0))
            sp2 = None

        return cls(
            projection=projection,
            standard_parallel_1=sp1,
            standard_parallel_2=sp2,
            central_meridian=float(params.get("lon_0", 0.0)),
            latitude_of_origin=lat_0,
            earth_radius=float(radius),
            dx=dx,
            dy=dy,
            x0=x0,
            y0=y0,
            nx=nx,
            ny=ny,
        )


class PointSet(BaseModel):
    """Ordered (longitude, latitude) pairs in a source coordinate system."""

    model_config = ConfigDict(frozen=True)

    longitudes: List[float] = Field(default_factory=list)
    latitudes: List[float] = Field(default_factory=list)
    crs: str = Field(default="EPSG:4326", description="Coordinate system of the points")

    @model_validator(mode='after')
    def validate_lengths(self):
        if len(self.longitudes) != len(self.latitudes):
            raise ValueError('longitudes and latitudes must have the same length')
        return self

    def __len__(self) -> int:
        return len(self.longitudes)

    @classmethod
    def from_pairs(cls, pairs: Sequence[Tuple[float, float]], crs: str = "EPSG:4326") -> "PointSet":
        lons = [float(lon) for lon, _ in pairs]
        lats = [float(lat) for _, lat in pairs]
        return cls(longitudes=lons, latitudes=lats, crs=crs)

    @classmethod
    def from_frame(
        cls,
        frame: SupportsColumns,
        crs: str = "EPSG:4326",
        lon_col: Optional[str] = None,
        lat_col: Optional[str] = None,
        config: Optional[GeogridConfig] = None,
    ) -> "PointSet":
        """Create a PointSet from a table with longitude and latitude columns."""
        cfg = get_config(config)
        lon_name = lon_col or cfg.resolve_column(frame.columns, cfg.longitude_columns, "longitude")
        lat_name = lat_col or cfg.resolve_column(frame.columns, cfg.latitude_columns, "latitude")
        return cls(
            longitudes=np.asarray(frame[lon_name], dtype=float).tolist(),
            latitudes=np.asarray(frame[lat_name], dtype=float).tolist(),
            crs=crs,
        )

    def as_arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        return (
            np.asarray(self.longitudes, dtype=float),
            np.asarray(self.latitudes, dtype=float),
        )


class GridIndex(BaseModel):
    """Grid cell holding a point, or the outside-grid marker when both fields are None."""

    model_config = ConfigDict(frozen=True)

    row: Optional[int] = None
    col: Optional[int] = None

    @model_validator(mode='after')
    def validate_pair(self):
        if (self.row is None) != (self.col is None):
            raise ValueError('row and col must both be set or both be None')
        return self

    @classmethod
    def outside(cls) -> "GridIndex":
        return cls(row=None, col=None)

    @property
    def inside(self) -> bool:
        return self.row is not None
