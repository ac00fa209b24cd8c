"""Top-level package for the unit hierarchy reconciler.

Repairs the denormalized battalion ancestry field stored on every unit
document so that it matches the unit's actual position in the hierarchy.
"""
__all__ = ["api", "core", "pipeline", "repo"]
__version__ = "0.1.0"
