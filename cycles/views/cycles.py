from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework import status

from cycles.permissions import IsClinician
from cycles.serializers.cycle import (
    CycleCancelSerializer,
    CycleCloseSerializer,
    CycleOpenSerializer,
    StageListQuerySerializer,
    StageWriteSerializer,
)
from cycles.services import cycles as svc


def _actor(request) -> str:
    return str(request.user.pk)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsClinician])
def cycle_open(request):
    s = CycleOpenSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    cycle = svc.open_cycle(
        patient_id=s.validated_data['patientId'],
        doctor_id=s.validated_data.get('doctorId') or _actor(request),
        treatment_type=s.validated_data.get('treatmentType'),
        actor_id=_actor(request),
    )
    return Response({'ok': True, 'data': svc.format_cycle(cycle)}, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def cycle_detail(request, cycle_id):
    cycle = svc.get_cycle(cycle_id)
    return Response({'ok': True, 'data': svc.format_cycle(cycle)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsClinician])
def cycle_save_draft(request, cycle_id):
    s = StageWriteSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    cycle = svc.save_draft(
        cycle_id,
        s.validated_data['stageId'],
        s.validated_data.get('data'),
        expected_version=s.validated_data['expectedVersion'],
        actor_id=_actor(request),
    )
    return Response({'ok': True, 'data': svc.format_cycle(cycle)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsClinician])
def cycle_complete_stage(request, cycle_id):
    s = StageWriteSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    cycle = svc.complete_stage(
        cycle_id,
        s.validated_data['stageId'],
        s.validated_data.get('data'),
        expected_version=s.validated_data['expectedVersion'],
        actor_id=_actor(request),
    )
    return Response({'ok': True, 'data': svc.format_cycle(cycle)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsClinician])
def cycle_close(request, cycle_id):
    s = CycleCloseSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    cycle = svc.close_cycle(
        cycle_id,
        s.validated_data['outcome'],
        expected_version=s.validated_data['expectedVersion'],
        actor_id=_actor(request),
    )
    return Response({'ok': True, 'data': svc.format_cycle(cycle)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsClinician])
def cycle_cancel(request, cycle_id):
    s = CycleCancelSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    cycle = svc.cancel_cycle(
        cycle_id,
        s.validated_data['reason'],
        expected_version=s.validated_data['expectedVersion'],
        actor_id=_actor(request),
    )
    return Response({'ok': True, 'data': svc.format_cycle(cycle)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def cycle_history(request, cycle_id):
    return Response({'ok': True, 'data': svc.audit_history(cycle_id)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def stage_list(request):
    q = StageListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    treatment_type = q.validated_data.get('treatmentType')
    stages = svc.list_stages(treatment_type)
    return Response({'ok': True, 'meta': {'treatmentType': treatment_type or svc.default_treatment_type()},
                     'data': stages})
