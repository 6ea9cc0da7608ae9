# Services package init
"""
Travel Admin Backend — Services Layer
=======================================

Service Inventory:
    - resources.py:        record type descriptors and request field parsing
    - record_store.py:     CRUD over one record type's table
    - object_store.py:     image storage backends (S3, local)
    - attachments.py:      attachment lifecycle (store, attach, reclaim)
    - resource_service.py: per-type workflows returning response envelopes
"""
