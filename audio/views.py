import logging

from rest_framework import status, views
from rest_framework.response import Response

from .errors import TriggerValidationError
from .maintenance import retrigger_missing
from .serializers import RetriggerResultSerializer
from .tasks import process_song_media
from .trigger import parse_storage_event

logger = logging.getLogger(__name__)


class StorageEventView(views.APIView):
    """
    Receives "object created" events from the storage trigger. Events for
    other buckets are acknowledged and ignored; valid ones enqueue a job.
    """

    def post(self, request):
        try:
            job = parse_storage_event(request.data)
        except TriggerValidationError as e:
            logger.warning("rejected storage event: %s", e)
            return Response({"detail": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        if job is None:
            return Response({"ignored": True}, status=status.HTTP_200_OK)

        process_song_media.delay(job.song_id, job.bucket, job.object_name, job.size)
        logger.info("queued preview job for song %s (%s)", job.song_id, job.object_name)
        return Response({"song_id": job.song_id}, status=status.HTTP_202_ACCEPTED)


class RetriggerMissingView(views.APIView):
    """
    Re-emits storage events for songs that have an original but no preview
    or waveform. Blocks until every batch has finished or timed out.
    """

    def post(self, request):
        summary = retrigger_missing()
        out = RetriggerResultSerializer(summary.as_dict()).data
        return Response({"ok": True, **out})
