"""Keys, certificates, signature cache and registry client for container image signatures."""

__version__ = "0.7.1a1"