"""
URL configuration for the clube project.
"""
from django.contrib import admin
from django.urls import include, path

from . import views

urlpatterns = [
    path('admin/', admin.site.urls),
    path('ping/', views.PingView.as_view(), name='ping'),
    path('chats/', include('chats.urls')),
    path('chats/', include('realtime.urls')),
]
