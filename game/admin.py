from django.contrib import admin
from .models import Checkpoint, Progress


class CheckpointInline(admin.TabularInline):
    model = Checkpoint
    extra = 0
    readonly_fields = ('level', 'place', 'scanned_at', 'time_taken_seconds')
    can_delete = False


@admin.register(Progress)
class ProgressAdmin(admin.ModelAdmin):
    list_display = ('player', 'place_index', 'current_level_number', 'completed', 'start_time', 'end_time')
    list_filter = ('completed',)
    readonly_fields = ('path', 'place_index', 'current_level_number', 'start_time', 'end_time', 'completed')
    inlines = [CheckpointInline]
