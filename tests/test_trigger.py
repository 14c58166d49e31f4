import pytest

from audio.errors import TriggerValidationError
from audio.trigger import parse_storage_event, song_id_from_object_name, storage_event_for

SONG_ID = "8c0f4a52-54a8-4a8e-9d1e-3f3c2b7d1a10"


def event(name, bucket="audio-originals", **record):
    return {
        "type": "INSERT",
        "table": "storage.objects",
        "record": {"bucket_id": bucket, "name": name, "size": 1234, "metadata": {}, **record},
    }


def test_valid_event_builds_job():
    job = parse_storage_event(event(f"{SONG_ID}/take-2.wav"))
    assert job.song_id == SONG_ID
    assert job.bucket == "audio-originals"
    assert job.object_name == f"{SONG_ID}/take-2.wav"
    assert job.size == 1234


def test_other_bucket_is_ignored():
    assert parse_storage_event(event(f"{SONG_ID}/preview.mp3", bucket="audio-previews")) is None


def test_update_events_are_accepted():
    payload = event(f"{SONG_ID}/take-2.wav")
    payload["type"] = "UPDATE"
    assert parse_storage_event(payload).song_id == SONG_ID


@pytest.mark.parametrize("name", [
    "",
    "take.wav",
    "short/take.wav",
    f"/{SONG_ID}/take.wav",
    f"{SONG_ID}/",
    f"{SONG_ID}/../other/take.wav",
    f"{SONG_ID}//take.wav",
    "bad song id!/take.wav",
])
def test_malformed_names_are_rejected(name):
    with pytest.raises(TriggerValidationError):
        parse_storage_event(event(name))


def test_missing_record_is_rejected():
    with pytest.raises(TriggerValidationError):
        parse_storage_event({"type": "INSERT", "table": "storage.objects"})


def test_unknown_event_type_is_rejected():
    payload = event(f"{SONG_ID}/take.wav")
    payload["type"] = "DELETE"
    with pytest.raises(TriggerValidationError):
        parse_storage_event(payload)


def test_song_id_is_first_segment_of_nested_names():
    assert song_id_from_object_name(f"{SONG_ID}/stems/vocals.wav") == SONG_ID


def test_storage_event_for_round_trips_through_receiver(settings):
    job = parse_storage_event(storage_event_for(f"{SONG_ID}/take.flac"))
    assert job.bucket == settings.SOURCE_BUCKET
    assert job.object_name == f"{SONG_ID}/take.flac"


def test_quantized_replacement_upload_is_ignored():
    assert parse_storage_event(event(f"{SONG_ID}/orig-16bit-1700000000000-take.wav")) is None


def test_quantized_replacement_is_accepted_when_retriggered():
    name = f"{SONG_ID}/orig-16bit-1700000000000-take.wav"
    job = parse_storage_event(storage_event_for(name, retrigger=True))
    assert job.object_name == name
    assert job.metadata == {"retrigger": True}


def test_names_merely_containing_the_prefix_are_accepted():
    assert parse_storage_event(event(f"{SONG_ID}/my-orig-16bit-mix.wav")).song_id == SONG_ID
