"""
Infrastructure layer - database, logging, settings, and technical concerns.

This layer contains infrastructure concerns like database access, the store,
event emitters, logging and configuration.
"""
