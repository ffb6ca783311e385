"""
Domain exceptions.

Malformed input is rejected loudly; degenerate-but-valid input (no trees,
zero plots) is handled by the calculators themselves and never raises.
"""


class MalformedBlueprintError(ValueError):
    """Blueprint cannot be turned into geometry (bad shape, bad grid, bad nesting)."""
    pass


class InvalidStatisticalInputError(ValueError):
    """Statistical input a caller should never send (negative counts, no iterations)."""
    pass


class BlueprintNotFoundError(LookupError):
    """No blueprint registered under the requested id/version."""

    def __init__(self, blueprint_id: str, version: int | None = None):
        self.blueprint_id = blueprint_id
        self.version = version
        if version is None:
            message = f"Blueprint '{blueprint_id}' is not registered"
        else:
            message = f"Blueprint '{blueprint_id}' v{version} is not registered"
        super().__init__(message)
