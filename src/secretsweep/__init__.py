"""secretsweep — hard-coded secret scanner for large file trees."""

__version__ = "0.1.0"
