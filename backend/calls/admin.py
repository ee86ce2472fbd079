from django.contrib import admin
from .models import Call, Milestone


class MilestoneInline(admin.TabularInline):
    model = Milestone
    extra = 0
    fields = ("order_index", "name", "who_can_fill", "required", "requires_review", "form_id", "status")
    ordering = ("order_index",)


@admin.register(Call)
class CallAdmin(admin.ModelAdmin):
    list_display = ("name", "year", "status", "is_active", "start_date", "end_date")
    list_filter = ("status", "is_active", "year")
    search_fields = ("name",)
    inlines = [MilestoneInline]


@admin.register(Milestone)
class MilestoneAdmin(admin.ModelAdmin):
    list_display = ("call", "order_index", "name", "who_can_fill", "requires_review", "status")
    list_filter = ("call", "who_can_fill", "status")
    search_fields = ("name",)
