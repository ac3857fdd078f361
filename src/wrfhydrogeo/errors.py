"""Custom exception hierarchy for wrfhydrogeo."""

from typing import Optional


class WrfHydroGeoError(Exception):
    """Base exception for wrfhydrogeo library."""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.cause = cause


class GeoFileNotFoundError(WrfHydroGeoError, FileNotFoundError):
    """An input file does not exist."""
    pass


class FileFormatError(WrfHydroGeoError):
    """Missing or malformed projection metadata, or an unreadable file."""
    pass


class VariableNotFoundError(WrfHydroGeoError):
    """A NetCDF variable, time step or layer is absent."""
    pass


class ProjectionMismatchError(WrfHydroGeoError):
    """Coordinates could not be transformed between reference systems."""
    pass


class EmptyInputError(WrfHydroGeoError):
    """Zero points or polygons were supplied where some are required."""
    pass
