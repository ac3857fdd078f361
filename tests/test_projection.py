"""
Tests for wrfhydrogeo.projection module.

Reads synthetic geogrid files and checks the projection and grid geometry
recovered from their global attributes and coordinate variables.
"""

import numpy as np
import pytest
import xarray as xr

import wrfhydrogeo as wg
from wrfhydrogeo.errors import FileFormatError, GeoFileNotFoundError
from wrfhydrogeo.projection import projection_params
from wrfhydrogeo.types import ProjectionType

from conftest import GEOGRID_ATTRS

LCC_PROJ4 = (
    "+proj=lcc +lat_1=30 +lat_2=60 +lat_0=40 +lon_0=-105.5"
    " +x_0=0 +y_0=0 +a=6370000 +b=6370000 +units=m +no_defs"
)


def _write_geogrid(path, attrs, hgt=None):
    hgt = np.zeros((1, 3, 4), dtype=np.float32) if hgt is None else hgt
    xr.Dataset({"HGT_M": (("Time", "south_north", "west_east"), hgt)}, attrs=attrs).to_netcdf(
        path, engine="netcdf4"
    )
    return path


@pytest.mark.integration
class TestGetProj:
    """Test PROJ.4 strings read from geogrid files."""

    def test_lambert_conformal(self, geo_file):
        """Test the projection of the Fourmile-like test domain."""
        proj4 = wg.get_proj(geo_file)

        assert proj4 == LCC_PROJ4

        print(f"✅ get_proj: {proj4}")

    def test_accepts_str_path(self, geo_file):
        assert wg.get_proj(str(geo_file)) == LCC_PROJ4

    def test_cen_lat_fallback(self, tmp_path):
        attrs = {k: v for k, v in GEOGRID_ATTRS.items() if k != "MOAD_CEN_LAT"}
        attrs["CEN_LAT"] = 39.0
        path = _write_geogrid(tmp_path / "geo_cen.nc", attrs)

        assert "+lat_0=39 " in wg.get_proj(path)

    def test_polar_stereographic(self, tmp_path):
        attrs = {**GEOGRID_ATTRS, "MAP_PROJ": 2, "TRUELAT1": 60.0}
        path = _write_geogrid(tmp_path / "geo_ps.nc", attrs)

        assert wg.get_proj(path).startswith("+proj=stere +lat_0=90 +lat_ts=60 +lon_0=-105.5")

    def test_mercator(self, tmp_path):
        attrs = {**GEOGRID_ATTRS, "MAP_PROJ": 3, "TRUELAT1": 20.0}
        path = _write_geogrid(tmp_path / "geo_merc.nc", attrs)

        assert wg.get_proj(path).startswith("+proj=merc +lat_ts=20 +lon_0=-105.5")

    def test_cylindrical_equidistant(self, tmp_path):
        attrs = {k: v for k, v in GEOGRID_ATTRS.items() if k not in ("TRUELAT1", "TRUELAT2")}
        attrs.update({"MAP_PROJ": 6, "POLE_LAT": 90.0})
        path = _write_geogrid(tmp_path / "geo_ll.nc", attrs)

        assert wg.get_proj(path).startswith("+proj=eqc +lat_ts=0 +lat_0=40")

    def test_missing_file(self, tmp_path):
        with pytest.raises(GeoFileNotFoundError):
            wg.get_proj(tmp_path / "does_not_exist.nc")

    def test_missing_file_is_file_not_found(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            wg.get_proj(tmp_path / "does_not_exist.nc")

    def test_missing_map_proj(self, tmp_path):
        attrs = {k: v for k, v in GEOGRID_ATTRS.items() if k != "MAP_PROJ"}
        path = _write_geogrid(tmp_path / "geo_noproj.nc", attrs)

        with pytest.raises(FileFormatError, match="MAP_PROJ"):
            wg.get_proj(path)

    def test_unsupported_map_proj(self, tmp_path):
        path = _write_geogrid(tmp_path / "geo_bad.nc", {**GEOGRID_ATTRS, "MAP_PROJ": 5})

        with pytest.raises(FileFormatError, match="Unsupported MAP_PROJ"):
            wg.get_proj(path)

    def test_rotated_pole_rejected(self, tmp_path):
        attrs = {**GEOGRID_ATTRS, "MAP_PROJ": 6, "POLE_LAT": 45.0}
        path = _write_geogrid(tmp_path / "geo_rot.nc", attrs)

        with pytest.raises(FileFormatError, match="rotated pole"):
            wg.get_proj(path)

    def test_not_netcdf(self, tmp_path):
        path = tmp_path / "geo_em_d01.nc"
        path.write_text("not a netcdf file")

        with pytest.raises(FileFormatError):
            wg.get_proj(path)


@pytest.mark.unit
class TestProjectionParams:
    """Test attribute parsing without touching the filesystem."""

    def test_array_valued_attributes(self):
        attrs = {**GEOGRID_ATTRS, "MAP_PROJ": np.array([1], dtype=np.int32), "DX": np.float32(1000.0)}
        params = projection_params(attrs)

        assert params["projection"] is ProjectionType.LAMBERT_CONFORMAL
        assert params["dx"] == 1000.0
        assert params["earth_radius"] == 6370000.0

    def test_non_numeric_attribute(self):
        with pytest.raises(FileFormatError, match="not numeric"):
            projection_params({**GEOGRID_ATTRS, "TRUELAT1": "thirty"})

    def test_custom_earth_radius(self):
        config = wg.GeogridConfig(earth_radius=6371229.0)
        assert projection_params(GEOGRID_ATTRS, config)["earth_radius"] == 6371229.0


@pytest.mark.integration
class TestGetGeogridSpatialInfo:
    """Test grid geometry recovered from geogrid files."""

    def test_grid_from_coordinate_variables(self, geo_file, lcc_grid):
        """Test the grid matches the one the file was generated from."""
        grid = wg.get_geogrid_spatial_info(geo_file)

        assert grid.projection is ProjectionType.LAMBERT_CONFORMAL
        assert (grid.nx, grid.ny) == (15, 12)
        assert grid.dx == 1000.0
        assert grid.dy == 1000.0
        # XLAT_M/XLONG_M are single precision
        assert grid.x0 == pytest.approx(lcc_grid.x0, abs=2.0)
        assert grid.y0 == pytest.approx(lcc_grid.y0, abs=2.0)
        assert grid.proj4 == LCC_PROJ4

        print(f"✅ Grid: {grid.nx}x{grid.ny} origin ({grid.x0:.1f}, {grid.y0:.1f})")

    def test_grid_from_corner_attributes(self, corner_geo_file, lcc_grid):
        """Test files without coordinate variables fall back to corner_lats/corner_lons."""
        grid = wg.get_geogrid_spatial_info(corner_geo_file)

        assert (grid.nx, grid.ny) == (15, 12)
        assert grid.x0 == pytest.approx(lcc_grid.x0, abs=0.01)
        assert grid.y0 == pytest.approx(lcc_grid.y0, abs=0.01)

    def test_read_grid_descriptor_alias(self, geo_file):
        assert wg.read_grid_descriptor(geo_file) == wg.get_geogrid_spatial_info(geo_file)

    def test_no_georeference(self, tmp_path):
        path = _write_geogrid(tmp_path / "geo_nocoords.nc", GEOGRID_ATTRS)

        with pytest.raises(FileFormatError, match="corner_lats"):
            wg.get_geogrid_spatial_info(path)

    def test_invalid_cell_size(self, tmp_path, cell_center_lonlat):
        lon, lat = cell_center_lonlat
        dims = ("Time", "south_north", "west_east")
        path = tmp_path / "geo_dx.nc"
        xr.Dataset(
            {"XLAT_M": (dims, lat[None]), "XLONG_M": (dims, lon[None])},
            attrs={**GEOGRID_ATTRS, "DX": -1000.0},
        ).to_netcdf(path, engine="netcdf4")

        with pytest.raises(FileFormatError):
            wg.get_geogrid_spatial_info(path)

    def test_one_dimensional_coordinates(self, tmp_path):
        """Regular lat/lon grids with 1-D coordinates."""
        attrs = {k: v for k, v in GEOGRID_ATTRS.items() if k not in ("TRUELAT1", "TRUELAT2")}
        attrs.update({"MAP_PROJ": 6, "MOAD_CEN_LAT": 0.0, "STAND_LON": 0.0, "DX": 1000.0, "DY": 1000.0})
        x = 500.0 + 1000.0 * np.arange(4)
        y = 500.0 + 1000.0 * np.arange(3)
        to_degrees = 180.0 / (np.pi * 6370000.0)
        path = tmp_path / "geo_1d.nc"
        xr.Dataset(
            {"HGT_M": (("lat", "lon"), np.zeros((3, 4)))},
            coords={"lat": y * to_degrees, "lon": x * to_degrees},
            attrs=attrs,
        ).to_netcdf(path, engine="netcdf4")

        grid = wg.get_geogrid_spatial_info(path)

        assert grid.projection is ProjectionType.LAT_LON
        assert (grid.nx, grid.ny) == (4, 3)
        assert grid.x0 == pytest.approx(0.0, abs=1e-6)
        assert grid.y0 == pytest.approx(0.0, abs=1e-6)
