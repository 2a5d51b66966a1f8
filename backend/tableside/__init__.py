"""
Table-session and access-control core.

- models/: SQLAlchemy models (tenants, sessions, orders)
- services/: policy engine, store adapter, domain services
- routers/: FastAPI routes
- core/: app wiring (dependencies, lifespan, middlewares)
"""
