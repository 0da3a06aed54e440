"""API route modules.

Route organization:
- health: Health check and environment presence report
- auth: OAuth user authorization and session status/logout
- github: App installation, callback, installation status, credential decision
- webhooks: GitHub webhook deliveries
"""

from . import auth, github, health, webhooks

__all__ = [
    "auth",
    "github",
    "health",
    "webhooks",
]
