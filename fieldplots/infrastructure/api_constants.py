"""
Observation store endpoint constants and configuration.

This module contains all record store collection paths and related constants.
Centralizing these values makes it easy to point the service at a different
store layout.
"""


class ObservationStoreEndpoints:
    """Collection paths of the observation record store."""

    PLOTS = "/plots/"
    PLOT_BY_ID = "/plots/{plot_id}/"
    TREE_OBSERVATIONS = "/tree-observations/"
    VEGETATION_OBSERVATIONS = "/vegetation-observations/"
    SAMPLING_UNIT_PROGRESS = "/sampling-unit-progress/"

    @classmethod
    def plot(cls, plot_id: str) -> str:
        """
        Get the path of a single plot record.

        Args:
            plot_id: Plot ID

        Returns:
            Formatted endpoint path
        """
        return cls.PLOT_BY_ID.format(plot_id=plot_id)


class StoreConstants:
    """General store client constants."""

    # HTTP Headers
    CONTENT_TYPE_JSON = "application/json"

    # Timeouts (in seconds)
    DEFAULT_TIMEOUT = 30.0

    # Pagination
    DEFAULT_PAGE_SIZE = 500
    MAX_PAGES = 1000
