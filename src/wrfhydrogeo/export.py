"""Export NetCDF model variables as georeferenced rasters."""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

import numpy as np
import xarray as xr

from .config import GeogridConfig, get_config
from .errors import FileFormatError, VariableNotFoundError
from .projection import get_geogrid_spatial_info, grid_descriptor_from_dataset, open_netcdf
from .raster import RasterLayer
from .types import GridDescriptor
from .typing import PathInput

logger = logging.getLogger(__name__)

__all__ = ["export_geogrid", "read_variable"]


def _spatial_dims(variable: xr.DataArray, config: GeogridConfig) -> Tuple[str, str]:
    dims = list(variable.dims)
    y_dim = next((dim for dim in dims if dim in config.y_dimensions), None)
    x_dim = next((dim for dim in dims if dim in config.x_dimensions), None)
    if y_dim is not None and x_dim is not None:
        return y_dim, x_dim
    if len(dims) < 2:
        raise FileFormatError(f"Variable '{variable.name}' has fewer than two dimensions: {dims}")
    return dims[-2], dims[-1]


def _select_index(variable: xr.DataArray, dim: str, index: int, label: str) -> xr.DataArray:
    size = variable.sizes[dim]
    if not -size <= index < size:
        raise VariableNotFoundError(
            f"{label.capitalize()} index {index} does not exist for '{variable.name}' ({dim} has {size} entries)"
        )
    return variable.isel({dim: index})


def read_variable(
    dataset: xr.Dataset,
    in_var: str,
    layer: Optional[int] = None,
    time_index: int = 0,
    config: Optional[GeogridConfig] = None,
) -> np.ndarray:
    """
    Read one 2-D plane of a NetCDF variable in (south_north, west_east) order.

    Args:
        dataset: Open dataset
        in_var: Variable name
        layer: 0-based index along the non-spatial, non-time dimension
        time_index: Index along the time dimension, when present
        config: Optional configuration

    Returns:
        2-D float array, row 0 southernmost

    Raises:
        VariableNotFoundError: If the variable, time step or layer does not exist
    """
    cfg = get_config(config)
    if in_var not in dataset.data_vars:
        raise VariableNotFoundError(
            f"Variable '{in_var}' not found; available: {sorted(str(name) for name in dataset.data_vars)}"
        )

    variable = dataset[in_var]
    y_dim, x_dim = _spatial_dims(variable, cfg)

    for dim in [d for d in variable.dims if d in cfg.time_dimensions and d not in (y_dim, x_dim)]:
        variable = _select_index(variable, dim, time_index, "time")

    extra: List[str] = [d for d in variable.dims if d not in (y_dim, x_dim)]
    if len(extra) > 1:
        raise FileFormatError(
            f"Variable '{in_var}' has more than one non-spatial dimension after time selection: {extra}"
        )
    if extra:
        layer_dim = extra[0]
        if layer is None:
            logger.warning(
                f"Variable '{in_var}' has {variable.sizes[layer_dim]} layers along '{layer_dim}'; exporting layer 0"
            )
            layer = 0
        variable = _select_index(variable, layer_dim, layer, "layer")
    elif layer is not None and layer != 0:
        raise VariableNotFoundError(f"Variable '{in_var}' has no layer dimension; layer {layer} does not exist")

    return np.asarray(variable.transpose(y_dim, x_dim).values, dtype=float)


def export_geogrid(
    in_file: PathInput,
    in_var: str,
    out_file: PathInput,
    in_coord_file: Optional[PathInput] = None,
    layer: Optional[int] = None,
    time_index: int = 0,
    config: Optional[GeogridConfig] = None,
) -> RasterLayer:
    """
    Export a variable of a WRF-Hydro NetCDF file as a georeferenced GeoTIFF.

    Files without coordinates (LDASOUT, RESTART) take their georeference from
    ``in_coord_file``, normally the geogrid file of the same domain.

    Args:
        in_file: NetCDF file holding the variable
        in_var: Variable name, e.g. ``HGT_M`` or ``SOIL_T``
        out_file: GeoTIFF to write; overwritten if present
        in_coord_file: Optional geogrid supplying projection and coordinates
        layer: 0-based layer for multi-layer variables
        time_index: Time step for variables with a time dimension
        config: Optional configuration

    Returns:
        The exported RasterLayer

    Raises:
        VariableNotFoundError: If the variable, time step or layer is absent;
            nothing is written
        FileFormatError: If the variable does not match the grid
    """
    cfg = get_config(config)
    with open_netcdf(in_file, cfg) as dataset:
        values = read_variable(dataset, in_var, layer=layer, time_index=time_index, config=cfg)
        grid: GridDescriptor
        if in_coord_file is None:
            grid = grid_descriptor_from_dataset(dataset, cfg)

    if in_coord_file is not None:
        grid = get_geogrid_spatial_info(in_coord_file, cfg)

    if values.shape != grid.shape:
        raise FileFormatError(
            f"Variable '{in_var}' has shape {values.shape} but the grid is {grid.shape}"
        )

    raster = RasterLayer(data=values, grid=grid, nodata=cfg.nodata, name=in_var)
    raster.to_geotiff(out_file)
    logger.info(f"Exported {in_var} from {in_file} to {out_file}")
    return raster
