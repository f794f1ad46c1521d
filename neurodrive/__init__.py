"""NeuroDrive self-healing tool orchestrator."""

__version__ = "0.1.0"
