"""Dashboard Copilot: semantic dataset introspection and dashboard spec lifecycle."""

__version__ = "0.1.0"
