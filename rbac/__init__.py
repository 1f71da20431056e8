"""rbac/ -- Roles, permissions and the authorization checks over them.

Layer rule: rbac/ imports only core/ + third-party libraries. Users are
referenced by integer ID only; rbac/ does NOT import from auth/.
"""
