"""
Temporal activity wrappers, workflow proxies and client-side helpers.

Intentionally empty: workflows import ``proxies`` directly, and only the
worker imports ``activities``, so the workflow sandbox never loads the
concrete backends.
"""
