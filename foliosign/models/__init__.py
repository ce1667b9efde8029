"""
Domain models (plain dataclasses, no storage or HTTP concerns).
"""
from .document import Document

__all__ = ["Document"]
