"""Configuration, package database, override resolution, source downloading and script prompts for a Linux user repository."""

__version__ = "0.1.0"