"""
Webhook Package

This package contains webhook handling components:
- security: Webhook signature verification
- events: WebHook envelope, parsing and the framework-independent receive path
- handler: FastAPI integration (state, dependency, error responses)

Submodules are imported directly; octoapp.config depends on security,
and events depends on octoapp.config.
"""
