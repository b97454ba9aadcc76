"""
Gamemaster Saga Test Suite
==========================

Test Organization
-----------------
- tests/unit/          : Rules, services with mocked collaborators, views
- tests/unit/domain/   : Battle session and progression value objects
- tests/integration/   : Service flows on a PostgreSQL testcontainer

Run `pytest -m "not database"` to skip the container-backed tests.
"""
