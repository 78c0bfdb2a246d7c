import uuid

from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Branch",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("name", models.CharField(max_length=160, verbose_name="Name")),
                ("code", models.CharField(max_length=32, unique=True, verbose_name="Code")),
                ("timezone", models.CharField(blank=True, default="", help_text="IANA name, e.g. Asia/Kolkata. Empty means the server default.", max_length=64, verbose_name="Timezone")),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "verbose_name": "Branch",
                "verbose_name_plural": "Branches",
                "ordering": ["name"],
            },
        ),
    ]
