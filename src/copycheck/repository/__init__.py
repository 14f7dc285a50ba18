"""Repository materialization."""

from .git import GitMaterializer

__all__ = ["GitMaterializer"]
