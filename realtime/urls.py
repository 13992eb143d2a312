from django.urls import path
from . import views

app_name = 'realtime'

urlpatterns = [
    path('<int:channel_id>/events/', views.channel_events, name='channel-events'),
]
