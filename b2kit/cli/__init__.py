from .core import raise_error, warn  # noqa: F401
