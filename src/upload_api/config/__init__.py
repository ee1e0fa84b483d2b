"""
Configuration management for the Upload API.

Contains the Pydantic settings read from the environment and `.env`.
"""
