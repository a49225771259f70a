"""
Pure domain layer: value objects, the lot workflow, allocation strategies,
reconciliation and split planning.  ZERO I/O -- nothing here imports
SQLAlchemy, models, services or selectors.
"""
