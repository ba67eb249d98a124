"""
Strategy simulators.

Each simulator walks a price series once and emits a trade ledger, a
mark-to-market equity curve, and a cash curve: DCA, grid, momentum and RSI
mean reversion.
"""
