from telemetry.errors import DegenerateGeometryError, KeyMismatchError, TelemetryError, ZeroEffortError

__version__ = '0.3.0'
