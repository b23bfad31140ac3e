"""
API module for Overhead.

Provides HTML and JSON endpoints for:
- Flight proximity statuses
- Recent track summaries
- Ingestion status
"""

from overhead.api.flights import flights_bp

__all__ = ['flights_bp']
