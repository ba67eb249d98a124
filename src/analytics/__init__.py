"""
Technical indicators, performance metrics, and synthetic price generation.

Holds the RSI and rolling-mean helpers used by the simulators, the metrics
calculator that scores trade ledgers and equity curves, and GBM/OU path
generators for offline runs and tests.
"""
