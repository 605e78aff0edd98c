"""
Accounts app URL configuration.

All routes are namespaced under ``accounts`` and designed to be included
in the project-level ``urls.py`` as::

    path('api/accounts/', include('accounts.urls')),

Endpoint Map
------------
Authentication
    POST   /token/                      → LoginView (SimpleJWT + role claims)
    POST   /token/refresh/              → TokenRefreshView (SimpleJWT)

Current User Profile ("Me")
    GET    /me/                         → MeView
    POST   /me/active-role/             → ActiveRoleView
"""

from django.urls import path
from rest_framework_simplejwt.views import TokenRefreshView

from .views import ActiveRoleView, LoginView, MeView

app_name = "accounts"

urlpatterns = [
    # ── Authentication ───────────────────────────────────────────────
    path("token/", LoginView.as_view(), name="token"),
    path(
        "token/refresh/",
        TokenRefreshView.as_view(),
        name="token-refresh",
    ),

    # ── Current User (Me) ───────────────────────────────────────────
    path("me/", MeView.as_view(), name="me"),
    path("me/active-role/", ActiveRoleView.as_view(), name="active-role"),
]
