"""kanban/ -- Workspace, board, column and card domain for Deltask.

Layer rule: kanban/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/ or auth/. The caller identity arrives as an
already-resolved user id string.
"""
