from rest_framework import serializers

from .models import Profile


class ProfileSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Profile
        fields = ['user_id', 'name', 'avatar_url']
