"""covcheck — enforce minimum line and branch coverage for Cargo projects."""

__version__ = "0.1.0"
