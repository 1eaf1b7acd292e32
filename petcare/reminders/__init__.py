"""Reminder service (HTTP API, Celery worker and the per-minute scheduler tick).

The API lets the rest of the backend create reminders and register device
tokens; the Celery beat schedule triggers one scheduler tick per minute.
"""
