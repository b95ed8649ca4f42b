"""
Core application: shared base model, error handling, logging, request
tracing, authentication and route guards used by every PMS app.
"""
