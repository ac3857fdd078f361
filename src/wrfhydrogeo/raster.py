# pyright: reportMissingImports=false, reportUnknownMemberType=false

"""Georeferenced raster layers on a model grid."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import numpy as np
import rasterio
import xarray as xr
from pydantic import BaseModel, ConfigDict, Field, model_validator
from rasterio.errors import RasterioIOError

from .errors import FileFormatError, GeoFileNotFoundError
from .types import GridDescriptor
from .typing import PathInput

logger = logging.getLogger(__name__)

__all__ = ["RasterLayer", "read_raster"]


class RasterLayer(BaseModel):
    """A 2-D array on a GridDescriptor.

    ``data`` is stored south-up: ``data[row, col]`` is the cell a
    :class:`~wrfhydrogeo.types.GridIndex` with the same row and col points at.
    """

    data: np.ndarray
    grid: GridDescriptor
    nodata: float = float("nan")
    name: Optional[str] = None
    attributes: Dict[int, Any] = Field(
        default_factory=dict, description="Lookup from numeric cell code to attribute value"
    )

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @model_validator(mode="after")
    def validate_shape(self):
        if self.data.ndim != 2:
            raise ValueError("RasterLayer data must be 2-D")
        if self.data.shape != self.grid.shape:
            raise ValueError(
                f"RasterLayer data shape {self.data.shape} does not match grid shape {self.grid.shape}"
            )
        return self

    def value_at(self, row: int, col: int) -> Any:
        """Cell value, or the categorical attribute it encodes when a lookup is attached."""

        value = self.data[row, col]
        if self.attributes and np.isfinite(value):
            return self.attributes.get(int(value), value)
        return value

    def to_dataarray(self) -> xr.DataArray:
        """Return the layer as an xarray ``DataArray`` with projected x/y coordinates."""

        x_coords, y_coords = self.grid.cell_centers()
        attrs: Dict[str, Any] = {
            "crs": self.grid.proj4,
            "transform": tuple(self.grid.transform)[:6],
            "nodata": self.nodata,
        }
        if self.attributes:
            attrs["attributes"] = dict(self.attributes)
        return xr.DataArray(
            self.data,
            coords={"y": y_coords, "x": x_coords},
            dims=("y", "x"),
            name=self.name,
            attrs=attrs,
        )

    def to_geotiff(self, path: PathInput) -> Path:
        """Write the layer as a single-band GeoTIFF, overwriting ``path``.

        The category lookup is stored as band tags with ``str`` values.
        """

        out_path = Path(path).expanduser()
        out_path.parent.mkdir(parents=True, exist_ok=True)

        data = np.flipud(self.data)
        dtype = np.result_type(data.dtype, np.float32)
        profile = {
            "driver": "GTiff",
            "height": self.grid.ny,
            "width": self.grid.nx,
            "count": 1,
            "dtype": dtype.name,
            "crs": self.grid.crs.to_wkt(),
            "transform": self.grid.transform,
            "nodata": self.nodata,
        }
        with rasterio.open(out_path, "w", **profile) as dst:
            dst.write(data.astype(dtype), 1)
            if self.name:
                dst.set_band_description(1, self.name)
            if self.attributes:
                dst.update_tags(1, **{str(code): str(value) for code, value in self.attributes.items()})

        logger.info(f"Wrote {self.grid.nx}x{self.grid.ny} raster to {out_path}")
        return out_path


def read_raster(path: PathInput) -> RasterLayer:
    """
    Read a single-band GeoTIFF back into a RasterLayer.

    Args:
        path: Raster file path

    Returns:
        RasterLayer with south-up data and a GridDescriptor rebuilt from the
        file's CRS and transform. GeoTIFF tags are text, so the category
        lookup comes back with ``str`` values (``True`` becomes ``"True"``)

    Raises:
        GeoFileNotFoundError: If the file does not exist
        FileFormatError: If the file is not a readable north-up raster
    """
    in_path = Path(path).expanduser()
    if not in_path.exists():
        raise GeoFileNotFoundError(f"Raster file not found: {in_path}")

    try:
        with rasterio.open(in_path) as src:
            data = src.read(1)
            transform = src.transform
            crs_wkt = src.crs.to_wkt() if src.crs else None
            nodata = src.nodata
            name = src.descriptions[0] if src.descriptions else None
            tags = src.tags(1)
    except RasterioIOError as exc:
        raise FileFormatError(f"Unable to read raster {in_path}: {exc}", cause=exc) from exc

    if crs_wkt is None:
        raise FileFormatError(f"Raster {in_path} carries no coordinate reference system")
    if transform.b != 0 or transform.d != 0 or transform.e >= 0:
        raise FileFormatError(f"Raster {in_path} is not a north-up grid")

    height, width = data.shape
    dy = -transform.e
    try:
        grid = GridDescriptor.from_crs(
            crs_wkt,
            dx=transform.a,
            dy=dy,
            x0=transform.c,
            y0=transform.f - height * dy,
            nx=width,
            ny=height,
        )
    except ValueError as exc:
        raise FileFormatError(f"Unsupported raster projection in {in_path}: {exc}", cause=exc) from exc

    attributes: Dict[int, Any] = {}
    for key, value in tags.items():
        if key.lstrip("-").isdigit():
            attributes[int(key)] = value

    return RasterLayer(
        data=np.flipud(data),
        grid=grid,
        nodata=float("nan") if nodata is None else float(nodata),
        name=name,
        attributes=attributes,
    )
