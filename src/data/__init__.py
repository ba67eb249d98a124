"""
Price series I/O, schema enforcement, and report writing.

Handles the canonical ``timestamp,price`` CSV used to cache and replay price
history, plus the JSON comparison report.
"""
