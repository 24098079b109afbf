"""fieldsync command line."""
from fieldsync import __version__

__all__ = ["__version__"]
