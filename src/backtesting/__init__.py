"""
Backtest configuration, result models, and the stateless engine.

The engine validates a config, fetches a price window from a provider,
dispatches to the strategy simulator, and scores the output.
"""
