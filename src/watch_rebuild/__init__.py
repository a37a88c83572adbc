"""
watch-rebuild: rerun a full site/content build whenever its sources change.

The package watches an input directory, serializes rebuilds of an external
generation pipeline, and keeps the pipeline's own output writes from
retriggering it.
"""

__all__ = ["__version__"]
__version__ = "0.1.0"
