"""Decision engines and collaborators used by handlers.

Handlers import services lazily so a cold start that only serves /health
never builds an engine or an SES client.
"""

# Do NOT import services here - use lazy loading in handlers instead
