"""plancraft: turn a free-text project description into a scheduled task plan."""

__version__ = "1.0.0"
