"""Quick Scheduler: free-text appointment capture."""

__version__ = "0.1.0"
