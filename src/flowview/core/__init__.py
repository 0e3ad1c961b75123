"""Core data types, geometry, store, scheduling and collaborator contracts."""
