"""auth/ -- Credential storage, password hashing, session tokens and Google ID token verification.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/, accounts/, or directory/.
api/ and accounts/ import from auth/, not the other way around.
"""
