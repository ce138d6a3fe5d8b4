"""Performance audit to remediation plan service."""
__version__ = "1.0.0"
