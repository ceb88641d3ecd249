"""
Logging, metrics and publish record sinks.
"""
