"""auth/ -- Credentials, tokens, and authorization for SheetShelf.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/.
It does NOT import from api/, library/, or cache/.
api/ and library/ import from auth/, not the other way around.
"""
