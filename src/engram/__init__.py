"""engram - tiered in-process memory with consolidation and decay."""

__version__ = "0.1.0"
