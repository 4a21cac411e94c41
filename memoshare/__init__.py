"""
memoshare - share text memos, publicly or privately.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("memoshare")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = ["__version__"]
