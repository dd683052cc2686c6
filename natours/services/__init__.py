# Services package init
"""
Natours API — Services Layer
==============================

What:  Business logic between the routes (HTTP) and the models (persistence).

Service Inventory:
    - query_builder:   query-string → filtered/sorted/paginated Select
    - credentials:     session tokens, password hashes, reset tokens
    - handler_factory: generic CRUD over a Resource descriptor
    - tour_service:    tour resource, statistics, geospatial lookups
    - review_service:  review resource, rating recomputation
    - user_service:    user resource, /me operations
    - auth_service:    signup, login, password flows
    - email_service:   SMTP delivery with retries
"""
