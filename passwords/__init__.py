"""passwords/ -- Password hashing, strength scoring, generation, policy and history.

Layer rule: passwords/ imports only core/ + third-party libraries.
It does NOT import from auth/ or rbac/. auth/ imports from passwords/, not
the other way around.
"""
