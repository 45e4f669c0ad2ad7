"""mpe - Master Prompt Editor core."""

__version__ = "0.1.0"
