# Routes package init
"""
Travel Admin Backend — API Routes Package
===========================================

Route Inventory:
    - resources.py:  /api/{products,notices,representatives} CRUD
                     (one router per record type, built from its descriptor)
    - health.py:     GET /, /health, /test, /mongodb-status
    - media.py:      GET /media/{path} (local object-store backend only)

Routes stay thin: read the request, call a service, pick the status code.
"""
