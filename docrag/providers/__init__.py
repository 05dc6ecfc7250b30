"""Concrete adapters implementing the interfaces in ``docrag.interfaces``."""
