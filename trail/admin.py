from django.contrib import admin
from .models import TrailLevel


@admin.register(TrailLevel)
class TrailLevelAdmin(admin.ModelAdmin):
    list_display = ('level_number', 'place_count', 'place_list')
    ordering = ('level_number',)

    @admin.display(description='Places')
    def place_count(self, obj):
        return len(obj.places)

    @admin.display(description='Names')
    def place_list(self, obj):
        return ", ".join(obj.place_names()) or "-"
