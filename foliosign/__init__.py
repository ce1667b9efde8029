"""folio-sign: place signature images on PDF pages and store the signed result."""

__version__ = "1.0.0"
