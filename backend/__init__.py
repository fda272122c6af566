"""
HeysMe API - FastAPI backend for the conversational page builder.

Serves sessions, the streaming agents, invite codes, the plaza listing,
Clerk webhooks and preview deployments.
"""
