import bleach
from rest_framework import serializers

from cycles.workflow.registry import treatment_types


def _clean(v):
    return bleach.clean((v or '').strip(), tags=set(), strip=True)


class CycleOpenSerializer(serializers.Serializer):
    patientId = serializers.CharField(max_length=64)
    doctorId = serializers.CharField(max_length=64, required=False)
    treatmentType = serializers.ChoiceField(choices=[], required=False)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['treatmentType'].choices = treatment_types()


class StageWriteSerializer(serializers.Serializer):
    stageId = serializers.CharField(max_length=64)
    data = serializers.JSONField(required=False)
    expectedVersion = serializers.IntegerField(min_value=0)


class CycleCloseSerializer(serializers.Serializer):
    outcome = serializers.JSONField()
    expectedVersion = serializers.IntegerField(min_value=0)

    def validate_outcome(self, v):
        if isinstance(v, dict) and isinstance(v.get('notes'), str):
            v = {**v, 'notes': _clean(v['notes'])}
        return v


class CycleCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500, allow_blank=True)
    expectedVersion = serializers.IntegerField(min_value=0)

    def validate_reason(self, v):
        return _clean(v)


class StageListQuerySerializer(serializers.Serializer):
    treatmentType = serializers.ChoiceField(choices=[], required=False)

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['treatmentType'].choices = treatment_types()
