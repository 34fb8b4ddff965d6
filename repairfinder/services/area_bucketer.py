class AreaBucketer:
    """
    Spatial quantization so that near-identical search points share a cache entry.
    """

    @staticmethod
    def get_area_code(lat: float, lon: float, precision: int = 3, separator: str = ":") -> str:
        """
        Generates a simplified 'area code' by rounding coordinates.

        Precision guide (approximate at equator):
        - 2 decimal places: ~1.11 km
        - 3 decimal places: ~111 m
        - 4 decimal places: ~11 m

        Args:
            lat: Latitude
            lon: Longitude
            precision: Number of decimal places to round to.
            separator: String placed between the two components.

        Returns:
            Fixed-width string representation of the bucket (e.g., "37.770:-122.420")
        """
        return f"{lat:.{precision}f}{separator}{lon:.{precision}f}"
