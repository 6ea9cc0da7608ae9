# Middleware package init
"""
Travel Admin Backend — Middleware Package
===========================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (outermost first):
    Request → [Request ID] → [Logging] → [GZip] → [CORS] → Route Handler

    1. Request ID: assigns the correlation ID every later log line carries
    2. Logging: one access line per request, with status and duration
    3. GZip: compresses list responses over 500 bytes
    4. CORS: answers preflight for the admin dashboard origin(s)

    Responses pass back through the same chain in reverse, so the request ID
    header and the logged status reflect the final response.
"""
