"""
HTTP API

FastAPI routers for rank checks, jobs, results, analytics, keyword lists,
plans, locations and admin. The application lives in api.app.
"""
