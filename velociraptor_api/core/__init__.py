"""
Core infrastructure: configuration, logging, exceptions, polling.
"""
