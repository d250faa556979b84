"""Shared utilities: logging, alerts, locking, tickers, clocks and validation."""
