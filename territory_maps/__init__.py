"""Territory Maps - print-ready territory images from WMS basemaps."""

__version__ = "0.1.0"
