import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Song",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("audio_url", models.CharField(blank=True, max_length=1024, null=True)),
                ("preview_url", models.URLField(blank=True, max_length=2048, null=True)),
                ("waveform_json", models.JSONField(blank=True, null=True)),
                ("original_bit_depth", models.PositiveSmallIntegerField(blank=True, null=True)),
                ("original_sample_rate", models.PositiveIntegerField(blank=True, null=True)),
                ("original_size_bytes", models.BigIntegerField(blank=True, null=True)),
                ("playback_size_bytes", models.BigIntegerField(blank=True, null=True)),
                ("playback_bitrate_kbps", models.PositiveSmallIntegerField(blank=True, null=True)),
                (
                    "processing_status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("succeeded", "Succeeded"), ("failed", "Failed")],
                        default="pending",
                        max_length=16,
                    ),
                ),
                ("last_processing_error", models.TextField(blank=True, default="")),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "db_table": "songs",
            },
        ),
    ]
