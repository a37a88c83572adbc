"""Core contracts shared by the watch session and pipeline adapters."""

from watch_rebuild.core.interfaces import IGenerationPipeline

__all__ = ["IGenerationPipeline"]
