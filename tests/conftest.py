"""
Shared test configuration, fixtures, and markers for wrfhydrogeo tests.
"""

import numpy as np
import pytest
import xarray as xr
import geopandas as gpd
from pyproj import Transformer
from shapely.geometry import box

from wrfhydrogeo.polygons import PolygonLayer
from wrfhydrogeo.types import GridDescriptor, ProjectionType


def pytest_configure(config):
    """Configure test markers."""
    config.addinivalue_line("markers", "unit: marks unit tests (fast, pure logic)")
    config.addinivalue_line("markers", "property: marks property-based tests")
    config.addinivalue_line("markers", "integration: marks tests that read and write files")


# Fourmile Creek-like domain: 15 x 12 cells of 1 km centred on (-105.5, 40.0)
GEOGRID_ATTRS = {
    "MAP_PROJ": 1,
    "TRUELAT1": 30.0,
    "TRUELAT2": 60.0,
    "STAND_LON": -105.5,
    "MOAD_CEN_LAT": 40.0,
    "CEN_LAT": 40.0,
    "DX": 1000.0,
    "DY": 1000.0,
    "WEST-EAST_GRID_DIMENSION": 16,
    "SOUTH-NORTH_GRID_DIMENSION": 13,
}

HUC_A = "101900050101"
HUC_B = "101900050102"
HUC_C = "101900050203"


@pytest.fixture
def lcc_grid() -> GridDescriptor:
    """Grid matching the synthetic geogrid file."""
    return GridDescriptor(
        projection=ProjectionType.LAMBERT_CONFORMAL,
        standard_parallel_1=30.0,
        standard_parallel_2=60.0,
        central_meridian=-105.5,
        latitude_of_origin=40.0,
        dx=1000.0,
        dy=1000.0,
        x0=-7500.0,
        y0=-6500.0,
        nx=15,
        ny=12,
    )


@pytest.fixture
def cell_center_lonlat(lcc_grid):
    """Longitude and latitude of every cell centre, shaped (south_north, west_east)."""
    x, y = lcc_grid.cell_centers()
    xx, yy = np.meshgrid(x, y)
    to_geographic = Transformer.from_crs(lcc_grid.crs, "EPSG:4326", always_xy=True)
    lon, lat = to_geographic.transform(xx, yy)
    return np.asarray(lon), np.asarray(lat)


@pytest.fixture
def hgt(lcc_grid) -> np.ndarray:
    """Elevation-like field, unique per cell."""
    ny, nx = lcc_grid.shape
    return (1800.0 + np.arange(ny * nx, dtype=np.float32).reshape(ny, nx)).astype(np.float32)


@pytest.fixture
def geo_file(tmp_path, cell_center_lonlat, hgt):
    """Synthetic geogrid file with XLAT_M/XLONG_M and HGT_M."""
    lon, lat = cell_center_lonlat
    dims = ("Time", "south_north", "west_east")
    dataset = xr.Dataset(
        {
            "XLAT_M": (dims, lat[None].astype(np.float32)),
            "XLONG_M": (dims, lon[None].astype(np.float32)),
            "HGT_M": (dims, hgt[None]),
        },
        attrs=GEOGRID_ATTRS,
    )
    path = tmp_path / "geo_em_d01.nc"
    dataset.to_netcdf(path, engine="netcdf4")
    return path


@pytest.fixture
def corner_geo_file(tmp_path, lcc_grid, hgt):
    """Geogrid file without coordinate variables, georeferenced by corner_lats/corner_lons."""
    to_geographic = Transformer.from_crs(lcc_grid.crs, "EPSG:4326", always_xy=True)
    corner_lon, corner_lat = to_geographic.transform(lcc_grid.x0, lcc_grid.y0)
    corner_lats = np.zeros(16)
    corner_lons = np.zeros(16)
    corner_lats[12] = corner_lat
    corner_lons[12] = corner_lon

    dataset = xr.Dataset(
        {"HGT_M": (("Time", "south_north", "west_east"), hgt[None])},
        attrs={**GEOGRID_ATTRS, "corner_lats": corner_lats, "corner_lons": corner_lons},
    )
    path = tmp_path / "geo_corners.nc"
    dataset.to_netcdf(path, engine="netcdf4")
    return path


@pytest.fixture
def soil_t(lcc_grid) -> np.ndarray:
    """Four-layer soil temperature, shaped (layer, south_north, west_east)."""
    ny, nx = lcc_grid.shape
    base = np.arange(ny * nx, dtype=np.float64).reshape(ny, nx) / 100.0
    return np.stack([270.0 + layer + base for layer in range(4)]).astype(np.float32)


@pytest.fixture
def restart_file(tmp_path, soil_t):
    """Synthetic RESTART file: no coordinates, no projection attributes."""
    layered = np.transpose(soil_t, (1, 0, 2))  # (south_north, soil_layers_stag, west_east)
    dataset = xr.Dataset(
        {"SOIL_T": (("Time", "south_north", "soil_layers_stag", "west_east"), layered[None])}
    )
    path = tmp_path / "RESTART.2013060100_DOMAIN1"
    dataset.to_netcdf(path, engine="netcdf4", format="NETCDF4")
    return path


@pytest.fixture
def rfc_frame() -> gpd.GeoDataFrame:
    """Simplified River Forecast Center boundaries in WGS84."""
    return gpd.GeoDataFrame(
        {
            "BASIN_ID": ["WGRFC", "MBRFC", "NCRFC", "NERFC"],
            "RFC_NAME": ["West Gulf", "Missouri Basin", "North Central", "Northeast"],
            "RFC_CITY": ["Fort Worth", "Pleasant Hill", "Chanhassen", "Taunton"],
        },
        geometry=[
            box(-107.0, 25.0, -93.0, 36.0),
            box(-112.0, 37.0, -95.0, 49.0),
            box(-95.0, 37.0, -85.0, 49.0),
            box(-85.0, 40.0, -66.0, 48.0),
        ],
        crs="EPSG:4326",
    )


@pytest.fixture
def rfc_layer(rfc_frame) -> PolygonLayer:
    return PolygonLayer.from_geodataframe(rfc_frame)


@pytest.fixture
def huc_layer(lcc_grid) -> PolygonLayer:
    """HUC12-like polygons drawn in the grid projection.

    A covers columns 0-6, B covers columns 7-14 of rows 0-5, and C covers
    the western 60% of cell (row 8, col 10). Everything else is uncovered.
    """
    return PolygonLayer(
        [
            box(-7500.0, -6500.0, -500.0, 5500.0),
            box(-500.0, -6500.0, 7500.0, -500.0),
            box(2500.0, 1500.0, 3100.0, 2500.0),
        ],
        records={"HUC12": [HUC_A, HUC_B, HUC_C], "AREA_ID": [1, 2, 3]},
        crs=lcc_grid.crs,
    )
