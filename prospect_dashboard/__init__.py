"""
Prospect Dashboard Backend Package.

FastAPI service layer for the visa and employment-certificate services
dashboard. Turns daily complaint, payment, to-do and prospect batches into
deduplicated sales counts, clean conversion rates and P&L figures.

Subpackages:
    - api: FastAPI route handlers
    - core: Configuration, database, and dependencies
    - models: Pydantic schemas and enums
    - services: Deduplication, conversion, ingestion and P&L logic
"""

__version__ = "1.0.0"
