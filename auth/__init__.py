"""auth/ -- Authentication and session-security core.

Layer rule: auth/ imports only stdlib, third-party libraries, and core/ (for
Settings). It does NOT import from api/. api/ imports from auth/, not the
other way around.
"""
