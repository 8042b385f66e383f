"""src/streamkeeper/version.py"""

__version__ = "0.1.0"
