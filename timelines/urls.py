"""
URL configuration for timelines app.
"""
from django.urls import path
from . import views

app_name = "timelines"

urlpatterns = [
    path("timeline/window", views.TimelineWindowView.as_view(), name="timeline-window"),
    path("timeline/aggregate", views.TimelineAggregateView.as_view(), name="timeline-aggregate"),
    path("timeline/gantt", views.FleetGanttView.as_view(), name="timeline-gantt"),
    path("reports/truck-wise", views.TruckWiseReportView.as_view(), name="truck-wise-report"),
    path("healthcheck", views.health_check, name="health-check"),
]
