"""
Debouncing, dependent query chains and stale retention.
"""
