"""
Data layer for the vehicle workflow: SQLAlchemy models only
"""
