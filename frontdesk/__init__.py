"""
Front Desk Registration Service

A FastAPI-based front-office service for hospital receptionists: patient
registration, appointment booking and prescription printing against the
hospital REST backend.
"""

__version__ = "1.0.0"
