"""auth/ -- Credential storage, password hashing and token handling for Deltask.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/ or kanban/.
api/ imports from auth/, not the other way around.
"""
