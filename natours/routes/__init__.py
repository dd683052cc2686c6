# Routes package init
"""
Natours API — Routes Package
==============================

Route Inventory (all under API_PREFIX except /health):
    - tours.py:    /tours, aliases, statistics, geospatial lookups
    - reviews.py:  /reviews and /tours/{tour_id}/reviews
    - users.py:    /users, authentication and password flows
    - health.py:   /health

Design Principle:
    Routes stay thin: parse the request, pick the dependencies that
    authenticate and authorize it, call one service method, wrap the result
    in the success envelope. Errors are raised, never returned; the handlers
    registered in main.py shape them.
"""

API_PREFIX = "/api/v1"
