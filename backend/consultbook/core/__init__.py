"""Core configuration, exceptions, enums and infrastructure helpers."""
