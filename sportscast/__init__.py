"""
Sportscast - sports broadcast event ingestion.

Acquires sports fixtures from external sources, binds them to a tenant's
TV channels and stores only the events that are not already scheduled.
"""

__version__ = "0.1.0"
