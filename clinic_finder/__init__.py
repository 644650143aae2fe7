"""Men's Health Finder clinic search engine."""

__version__ = "1.0.0"
