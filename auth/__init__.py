"""auth/ -- Accounts, signed access tokens and the login/registration flows.

Layer rule: auth/ imports from core/ and passwords/ plus third-party
libraries. It does NOT import from rbac/.
"""
