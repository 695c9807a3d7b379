"""Event-driven HTTP/1.1 server configured with nginx-style server and location blocks."""

__version__ = "0.1.0"