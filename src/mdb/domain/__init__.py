"""
Domain layer - entities and domain events.

This layer contains the archive entities (files, operations, content units,
collections) and the events handlers produce, independent of any external
concerns.
"""
