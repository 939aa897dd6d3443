from . import auth, content, dashboard, health, messages, superadmin, tenants

API_ROUTERS = (
    auth.router,
    tenants.router,
    content.router,
    messages.router,
    dashboard.router,
    superadmin.router,
)

__all__ = ["API_ROUTERS", "health"]
