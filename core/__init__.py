"""core/ -- Configuration, error taxonomy, capability interfaces and DB helpers.

Layer rule: core/ is the kernel. It imports only stdlib + third-party
libraries and never from auth/, passwords/, or rbac/.
"""
