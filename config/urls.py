"""
URL configuration for Taskflow project.
"""
from django.contrib import admin
from django.urls import path
from ninja import NinjaAPI

from apps.core.errors import register_exception_handlers
from apps.core.throttling import ApiRateThrottle
from apps.core.views import api_index, health

api = NinjaAPI(
    title="Taskflow API",
    version="1.0.0",
    description="Multi-user task management API",
    docs_url="/docs",
    throttle=[ApiRateThrottle()],
)
register_exception_handlers(api)

from apps.identity.api import router as identity_router
from apps.tasks.api import router as tasks_router
from apps.quotes.api import router as quotes_router
from apps.ai.api import router as ai_router

api.add_router("/auth", identity_router)
api.add_router("/tasks", tasks_router)
api.add_router("/quotes", quotes_router)
api.add_router("/ai", ai_router)

urlpatterns = [
    path('admin/', admin.site.urls),
    path('health', health, name='health'),
    path('api', api_index, name='api-index'),
    path('api/', api.urls),
]
