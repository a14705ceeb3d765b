"""
Operations endpoints.

These endpoints are for infrastructure monitoring and should be:
- Served without authentication
- Protected at network level (internal only) in production
"""
from django.urls import path

from ops.health import LivenessView, ReadinessView, FullHealthView

urlpatterns = [
    path("", FullHealthView.as_view(), name="health"),
    path("live", LivenessView.as_view(), name="health-live"),
    path("ready", ReadinessView.as_view(), name="health-ready"),
]
