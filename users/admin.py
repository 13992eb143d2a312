from django.contrib import admin
from .models import Profile


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ('user_id', 'name', 'is_paid', 'created_at')
    list_filter = ('is_paid',)
    search_fields = ('user_id', 'name')
    readonly_fields = ('created_at', 'updated_at')
