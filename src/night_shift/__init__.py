"""Night-shift task runner for the agent fleet."""

__version__ = "0.1.0"
