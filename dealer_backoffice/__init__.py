"""Invoice totals, document composition and vehicle funding for dealer back offices."""

__version__ = "1.0.0"
