"""library/ -- Works, per-user library entries, and the user directory.

Layer rule: library/ may import from auth/, core/ and cache/ (through core).
It does NOT import from api/.
"""
