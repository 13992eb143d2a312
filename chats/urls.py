from django.urls import path
from . import views

app_name = 'chats'

urlpatterns = [
    path('', views.ChannelListView.as_view(), name='channel-list'),
    path('with/<str:other_user_id>/', views.ChannelOpenView.as_view(), name='channel-open'),
    path('<int:channel_id>/messages/', views.ChannelMessagesView.as_view(), name='channel-messages'),
    path('<int:channel_id>/', views.ChannelDetailView.as_view(), name='channel-detail'),
]
