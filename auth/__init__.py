"""auth/ -- Authentication and authorization package for TaskGuard.

Layer rule: auth/ imports only stdlib + third-party libraries + core/.
It does NOT import from api/ or tasks/.
api/ and tasks/ import from auth/, not the other way around.
"""
