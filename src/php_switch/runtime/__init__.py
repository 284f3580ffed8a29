"""Container runtime capability interface."""

from .ports import ContainerRuntime

__all__ = ["ContainerRuntime"]
