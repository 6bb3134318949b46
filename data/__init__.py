"""Data access layer for the portfolio engine.

This module provides the ledger record models and repository adapters that
hand one user's trades, cash flows, FX rates and market prices to the engine.
"""
