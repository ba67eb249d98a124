"""
Configuration loading and validation for price sources and run defaults.

Provides typed settings objects read from environment variables (and an
optional .env file) with upfront validation.
"""
