"""
pytest suite for the Social Bite order tracking backend.

Test categories:
- Unit tests: tracking engine, view calculators, event bus, stores, watcher
- Integration tests: ORM models against in-memory SQLite
- API tests: full FastAPI app through an httpx ASGI client
"""
