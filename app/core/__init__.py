"""Configuration and logging for the queue service."""
