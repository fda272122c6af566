"""API routers, one module per area."""

from backend.routes import agents, auth, deploy, invite_codes, plaza, sessions, templates

ROUTERS = [
    auth.router,
    invite_codes.router,
    plaza.router,
    templates.router,
    sessions.router,
    agents.router,
    deploy.router,
]
