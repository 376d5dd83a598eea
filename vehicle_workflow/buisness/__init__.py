"""
Domain layer for the vehicle workflow.
Contains business logic separated from data persistence concerns.
"""
