"""Game domain services: lifecycle, team assignment, scoring and snapshots.

This package contains the domain logic that HTTP routes and socket
handlers call into, keeping transport concerns separated from the core
session state machine. Services receive their store and broadcaster
explicitly; nothing here reaches for a module-level handle.
"""
