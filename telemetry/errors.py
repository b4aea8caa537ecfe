#
# structural failures of the pipeline.
#
# Per-row missing data (no bearing, no distance, no arrival time) is never raised: it travels through the tables as
# NaN / None / 'undetermined'. Only problems that make a whole group meaningless stop the run.
#

# label carried by rows whose position could not be derived
MISSING = 'missing'


class TelemetryError(ValueError):
    pass


class DegenerateGeometryError(TelemetryError):
    """Fewer than 3 distinct points, or all points on one line."""


class KeyMismatchError(TelemetryError, KeyError):
    """A (site, period) key with no matching area polygon."""

    def __init__(self, keys, what:str='area polygon'):
        self.keys = list(keys)
        super().__init__(f"no {what} for (site, period): {', '.join(str(k) for k in self.keys)}")

    def __str__(self):
        return self.args[0]


class ZeroEffortError(TelemetryError):
    """Occupancy requested over zero observation effort."""
