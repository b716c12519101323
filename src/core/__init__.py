"""Core domain package for dropwatch.

Core holds the extraction strategies and the dedup ledger without any
Telegram or Discord specific code, so the detection logic stays portable.
"""
