"""podarc: build a versioned, validated catalog of podcast episodes and series."""

__version__ = "0.1.0"
