"""Console task tracker: in-memory task service persisted to a JSON or XML file."""

__version__ = "0.1.0"
