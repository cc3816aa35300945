"""auth/ -- Authentication subsystem for Gatehouse.

Leaf to root: passwords, tokens, credential/storage, service, guard,
authenticator. store.py is the SQL-backed user repository.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/ or web/. api/ and web/ import from auth/, not
the other way around.
"""
