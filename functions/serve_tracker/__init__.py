"""
Serve tracker backend.

FastAPI service for process servers: clients, serve attempts, cases and
documents kept in a hosted document database and object storage, with a
device-local store used whenever the remote backend is unreachable.
"""
