"""Configuration for the sportscast service."""
