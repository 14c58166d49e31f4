from rest_framework import serializers

EVENT_TYPES = ("INSERT", "UPDATE")


class StorageObjectSerializer(serializers.Serializer):
    bucket_id = serializers.CharField()
    name = serializers.CharField(allow_blank=True, trim_whitespace=False)
    size = serializers.IntegerField(required=False, min_value=0, default=0, allow_null=True)
    metadata = serializers.DictField(required=False, default=dict, allow_null=True)


class StorageEventSerializer(serializers.Serializer):
    """Inbound "object created" event from the storage trigger."""
    type = serializers.ChoiceField(choices=EVENT_TYPES)
    table = serializers.CharField(required=False, allow_blank=True, default="")
    record = StorageObjectSerializer()


class RetriggerResultSerializer(serializers.Serializer):
    triggered = serializers.IntegerField()
    succeeded = serializers.IntegerField()
    failed = serializers.IntegerField()
    errors = serializers.IntegerField()
