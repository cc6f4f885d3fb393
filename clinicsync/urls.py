"""
URL configuration for clinicsync project.

The reconciliation engine is driven from management commands and Celery
tasks, so no HTTP routes are exposed.
"""

urlpatterns = []
