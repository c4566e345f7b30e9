"""Grade snapshot store.

Owns the canonical Year/Module/Assignment/SubTask tree, applies CRUD
mutations copy-on-write, serializes the snapshot to and from its JSON
format and persists it best-effort after each change.
"""
