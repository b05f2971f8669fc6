"""auth/ -- Credential primitives for Gatekeeper.

passwords.py (bcrypt secrets), tokens.py (signed JWTs), store.py (user
repository), avatar.py (Gravatar URLs) and dependencies.py (access guard).

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/, accounts/, or mail/.
accounts/ and api/ import from auth/, not the other way around.
"""
