"""
Municipality app URL configuration.

Included in the project-level ``urls.py`` as::

    path('api/municipality/', include('municipality.urls')),

Endpoint Map
------------
    GET    /categories/          → ProblemCategoryViewSet.list
    GET    /categories/{id}/     → ProblemCategoryViewSet.retrieve
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from .views import ProblemCategoryViewSet

app_name = "municipality"

router = DefaultRouter()
router.register(r"categories", ProblemCategoryViewSet, basename="category")

urlpatterns = [
    path("", include(router.urls)),
]
