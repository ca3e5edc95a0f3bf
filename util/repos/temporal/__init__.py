"""
Temporal repository utilities.

Decorators that turn repository protocols into Temporal activities on the
worker side and into activity-calling proxies on the workflow side.
"""
