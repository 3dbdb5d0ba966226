"""Concrete adapters for the interfaces in ``finddocs.interfaces``."""
