"""
Data models module for the Agora forum layer.

This module contains:
- Domain entities exchanged between presenters, data sources and views
- SQLAlchemy ORM rows used by the SQL data source
"""
