# Keyhouse HTTP surface.
# Created: 2026-10-07
#
# Thin FastAPI routers over the authorization core. Endpoints live at the
# application root (/oauth/*, /.well-known/*) as OAuth clients expect.
