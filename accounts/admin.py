from django.contrib import admin
from .models import User


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('name', 'phonenumber', 'department', 'role', 'created_at')
    list_filter = ('role', 'department')
    search_fields = ('name', 'phonenumber')
    readonly_fields = ('password', 'created_at')
