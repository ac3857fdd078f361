"""Configuration defaults shared by the readers, indexers and overlays."""

from __future__ import annotations

from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class GeogridConfig(BaseModel):
    """Tunable constants describing how WRF-Hydro files are interpreted."""

    model_config = ConfigDict(frozen=True)

    earth_radius: float = Field(
        6370000.0, gt=0, description="Radius of the WRF sphere in metres"
    )
    coordinate_variables: Tuple[Tuple[str, str], ...] = Field(
        (("XLAT_M", "XLONG_M"), ("XLAT", "XLONG"), ("lat", "lon")),
        description="Candidate (latitude, longitude) variable pairs, in lookup order",
    )
    y_dimensions: Tuple[str, ...] = Field(
        ("south_north", "y", "lat", "latitude"),
        description="Dimension names recognised as the south-north axis",
    )
    x_dimensions: Tuple[str, ...] = Field(
        ("west_east", "x", "lon", "longitude"),
        description="Dimension names recognised as the west-east axis",
    )
    time_dimensions: Tuple[str, ...] = Field(
        ("Time", "time"), description="Dimension names recognised as time"
    )
    longitude_columns: Tuple[str, ...] = Field(
        ("longitude", "lon"), description="Point table columns holding longitude"
    )
    latitude_columns: Tuple[str, ...] = Field(
        ("latitude", "lat"), description="Point table columns holding latitude"
    )
    source_crs: str = Field(
        "EPSG:4326", description="Coordinate system assumed for input points"
    )
    subcells: int = Field(
        10, gt=0, description="Sub-cells per cell edge for fractional coverage"
    )
    nodata: float = Field(float("nan"), description="Value for cells with no data")
    mask_value: float = Field(1.0, description="Value burned into masked cells")
    chunk_size: int = Field(
        1000, gt=0, description="Points per task when point queries run in parallel"
    )
    netcdf_engine: Optional[str] = Field(
        "netcdf4", description="xarray backend engine used to open NetCDF files"
    )

    def resolve_column(self, columns, candidates: Tuple[str, ...], label: str) -> str:
        """Return the first candidate column present in ``columns``."""

        for name in candidates:
            if name in columns:
                return name
        raise ValueError(
            f"Point table has no {label} column; expected one of {list(candidates)}"
        )


DEFAULT_CONFIG = GeogridConfig()


def get_config(config: Optional[GeogridConfig] = None) -> GeogridConfig:
    """Return ``config`` or the package defaults."""

    return config if config is not None else DEFAULT_CONFIG
