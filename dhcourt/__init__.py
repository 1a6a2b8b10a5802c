"""Delhi High Court case-status scraper."""

__version__ = "0.1.0"
