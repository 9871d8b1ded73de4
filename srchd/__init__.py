"""srchd - execution and lifecycle core for autonomous research agents."""

__version__ = "0.1.0"
