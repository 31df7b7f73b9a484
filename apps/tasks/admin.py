from django.contrib import admin
from .models import Task, TaskAssignment, TaskComment


class TaskAssignmentInline(admin.TabularInline):
    model = TaskAssignment
    extra = 0
    raw_id_fields = ['user', 'assigned_by']


class TaskCommentInline(admin.TabularInline):
    model = TaskComment
    extra = 0
    raw_id_fields = ['author']


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ['title', 'owner', 'status', 'priority', 'category', 'due_date', 'is_archived']
    list_filter = ['status', 'priority', 'category', 'is_archived']
    search_fields = ['title', 'description', 'owner__email']
    raw_id_fields = ['owner', 'created_by', 'last_modified_by']
    readonly_fields = ['completed_at', 'created_at', 'updated_at']
    inlines = [TaskAssignmentInline, TaskCommentInline]


@admin.register(TaskComment)
class TaskCommentAdmin(admin.ModelAdmin):
    list_display = ['task', 'author', 'created_at']
    search_fields = ['content', 'author__email']
