"""
Celery configuration for Taskflow project.
"""
import os
from celery import Celery
from celery.schedules import crontab

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

app = Celery('config')
app.config_from_object('django.conf:settings', namespace='CELERY')
app.autodiscover_tasks()

# Celery Beat Schedule
app.conf.beat_schedule = {
    'notify-overdue-tasks': {
        'task': 'apps.tasks.tasks.notify_overdue_tasks',
        'schedule': crontab(minute='0'),  # Hourly
    },
}
