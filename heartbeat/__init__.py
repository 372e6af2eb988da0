"""Heartbeat (dead man's switch) monitoring: monitor store, check cycle and Telegram alerts."""

__version__ = "0.1.0"
