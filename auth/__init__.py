"""auth/ -- Password digests and the bearer-token lifecycle.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/, core/, or account/.
api/ imports from auth/, not the other way around.
"""
