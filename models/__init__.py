"""Language model access for judges and automated debaters."""

from .manager import ModelManager

__all__ = ["ModelManager"]
