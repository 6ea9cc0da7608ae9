"""
Travel Admin Backend — Application Package
============================================

Layers:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │   Services (workflows, lifecycle)   │  ← validation, images, envelopes
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │  Database / Object Store (Backends) │  ← async sessions, S3 / disk
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
