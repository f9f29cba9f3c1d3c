"""
Celery configuration for the credits service.

Celery runs the scheduled work of the service; today that is the hourly
billing period rollover (credits.tasks.reset_billing_periods), whose
schedule is stored by django-celery-beat.

This configuration uses Redis as both the message broker and result backend.
Tasks are auto-discovered from all installed Django apps.

Usage:
    # Run a worker and the beat scheduler:
    celery -A config worker -l info
    celery -A config beat -l info

    # Trigger the rollover by hand:
    from credits.tasks import reset_billing_periods
    reset_billing_periods.delay()

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

# Create Celery application instance
# The name should match the Django project name
app = Celery("config")

# Load configuration from Django settings
# All Celery settings should be prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Auto-discover tasks from all registered Django apps
# Celery will look for a tasks.py module in each installed app
app.autodiscover_tasks()
