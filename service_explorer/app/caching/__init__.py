"""
Query keys, the session query cache and the fetch scheduler.
"""
