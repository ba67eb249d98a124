"""
Generic utility functions shared across modules.

Currently just the logging setup.
"""
