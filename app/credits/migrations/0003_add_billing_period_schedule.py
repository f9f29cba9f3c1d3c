"""
Add celery-beat schedule for rolling over billing periods.

This migration creates the periodic task schedule for the
reset_billing_periods task, which runs every hour to reset usage
counters of holders whose billing period has ended.
"""

from django.db import migrations


def create_periodic_task(apps, schema_editor):
    """Create the periodic task for billing period rollover."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    # Create interval schedule: every hour
    schedule, _ = IntervalSchedule.objects.get_or_create(
        every=1,
        period="hours",
    )

    PeriodicTask.objects.get_or_create(
        name="Reset Billing Periods",
        defaults={
            "task": "credits.tasks.reset_billing_periods",
            "interval": schedule,
            "enabled": True,
            "description": (
                "Resets minutes and calls used for holders whose billing "
                "period has ended and starts the next period."
            ),
        },
    )


def remove_periodic_task(apps, schema_editor):
    """Remove the periodic task on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(
        name="Reset Billing Periods",
    ).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("credits", "0002_seed_pricing_settings"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_task, remove_periodic_task),
    ]
