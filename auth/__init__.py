"""auth/ -- Authentication package for FleetAdvisor.

Identity is delegated to an external OIDC provider; this package only issues
and verifies the signed session token and checks the static API key.

Layer rule: auth/ imports only stdlib, third-party libraries and core.config.
It does NOT import from api/ or cmdb/. api/ imports from auth/, not the
other way around.
"""
