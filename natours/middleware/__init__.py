# Middleware package init
"""
Natours API — Middleware Package
==================================

Middleware Chain (outermost first):
    Request → [Rate Limit] → [Request ID] → [Logging] → [Security Headers]
            → [CORS] → [GZip] → Route Handler

    1. Rate Limit first: over-budget requests are rejected before any work
    2. Request ID: correlation ID for every log line that follows
    3. Logging: sees the final status and total duration
    4. Security headers / CORS / GZip decorate the response on its way out
"""
