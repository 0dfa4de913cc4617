"""skillet: cook AI coding assistant profiles and serve them to the whole team."""

__version__ = "0.3.0"


class SkilletError(Exception):
    """Base class for every error skillet reports to its caller."""
