"""MedicaidReady provider readiness backend."""

APP_NAME = "MedicaidReady"

__version__ = "0.4.0"
