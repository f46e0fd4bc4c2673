"""
pytest suite for the FuelGo backend.

Test categories:
- Unit tests: validators, rate limiter, real-time hub, logo storage
- Integration tests: services against in-memory SQLite
- API tests: full FastAPI app over httpx with the test session injected
"""
