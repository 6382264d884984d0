"""
Durable storage for the trip store: JSON persistence backends and the
versioned migrations applied when an older payload is loaded.
"""
