"""auth/ -- Session authentication core.

Layer rule: auth/ imports only stdlib + third-party libraries (plus fastapi /
starlette types in transport.py and dependencies.py). It does NOT import from
api/, web/, or core/. api/ and web/ import from auth/, not the other way around.
"""
