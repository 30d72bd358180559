"""BizDesk role & permission authorization core."""

__version__ = "0.1.0"
