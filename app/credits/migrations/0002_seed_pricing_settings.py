"""
Seed the pricing table with the default rates.

Existing rows are left untouched so operator edits survive re-running
migrations on a restored database.
"""

from decimal import Decimal

from django.db import migrations

DEFAULT_PRICING = [
    ("assistant_base_cost", Decimal("20.00"), "Fee per assistant beyond the plan quota"),
    ("cost_per_minute_payg", Decimal("0.07"), "Per-minute rate on pay-as-you-go"),
    (
        "cost_per_minute_overage",
        Decimal("0.05"),
        "Per-minute rate beyond the plan's included minutes",
    ),
    ("minimum_topup_amount", Decimal("5.00"), "Smallest accepted top-up"),
    (
        "initial_payg_charge",
        Decimal("25.00"),
        "First payment when switching to pay-as-you-go",
    ),
    (
        "payg_initial_credits",
        Decimal("5.00"),
        "Credits granted with the first pay-as-you-go payment",
    ),
]


def seed_pricing(apps, schema_editor):
    """Create any missing pricing rows with their default values."""
    PricingSetting = apps.get_model("credits", "PricingSetting")

    for key, value, description in DEFAULT_PRICING:
        PricingSetting.objects.get_or_create(
            key=key,
            defaults={
                "value": value,
                "category": "pricing",
                "description": description,
                "is_public": True,
            },
        )


def unseed_pricing(apps, schema_editor):
    """Remove the seeded rows on migration rollback."""
    PricingSetting = apps.get_model("credits", "PricingSetting")

    PricingSetting.objects.filter(key__in=[key for key, _, _ in DEFAULT_PRICING]).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("credits", "0001_initial"),
    ]

    operations = [
        migrations.RunPython(seed_pricing, unseed_pricing),
    ]
