"""
Application wiring: dependencies, lifespan, CORS and middlewares.
"""
