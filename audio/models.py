import uuid
from django.db import models


class Song(models.Model):
    """
    Media columns of a song row. The row is created by the web layer when the
    original is uploaded; the preview pipeline only ever updates it.
    """
    class ProcessingStatus(models.TextChoices):
        PENDING = "pending"
        SUCCEEDED = "succeeded"
        FAILED = "failed"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    audio_url = models.CharField(max_length=1024, null=True, blank=True)    # canonical original object path
    preview_url = models.URLField(max_length=2048, null=True, blank=True)   # set iff status == succeeded
    waveform_json = models.JSONField(null=True, blank=True)                 # {"peaks": [...], "duration": float}

    original_bit_depth = models.PositiveSmallIntegerField(null=True, blank=True)
    original_sample_rate = models.PositiveIntegerField(null=True, blank=True)
    original_size_bytes = models.BigIntegerField(null=True, blank=True)
    playback_size_bytes = models.BigIntegerField(null=True, blank=True)
    playback_bitrate_kbps = models.PositiveSmallIntegerField(null=True, blank=True)

    processing_status = models.CharField(
        max_length=16, choices=ProcessingStatus.choices, default=ProcessingStatus.PENDING
    )
    last_processing_error = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "songs"

    def __str__(self):
        return f"Song {self.id} ({self.processing_status})"
