"""
Configuration layer - read-only lookup tables.

The registry is built once per process and passed into every component.
"""
