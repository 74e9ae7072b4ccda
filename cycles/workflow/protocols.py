"""
Stage declarations for the supported treatment protocols.

Field names follow the camelCase keys clinicians' forms submit.  Dates
marked retrospective describe procedures that already happened and may
not lie in the future.
"""
from __future__ import annotations

from .registry import StageDefinition, choice, count, date, flag, number, record, text

SEVERITIES = ('Minor', 'Moderate', 'Severe')
DIFFICULTIES = ('Easy', 'Moderate', 'Difficult')
PREGNANCY_RESULTS = ('Positive', 'Negative', 'Biochemical')
CLINICAL_OUTCOMES = (
    'Clinical pregnancy - singleton',
    'Clinical pregnancy - twins',
    'Clinical pregnancy - triplets+',
    'Biochemical pregnancy',
    'Ectopic pregnancy',
    'Miscarriage',
    'Negative',
    'Ongoing',
)

COMPLICATION = record(
    'complications',
    required=(text('type', max_length=120), choice('severity', SEVERITIES)),
    optional=(text('management', max_length=500),),
    repeated=True,
)

PERFORMED_BY = record(
    'performedBy',
    required=(text('doctorId', max_length=64),),
    optional=(text('doctorName', max_length=120), text('embryologistId', max_length=64),
              text('embryologistName', max_length=120)),
)

NOTES = text('notes', max_length=4000)

# Full medication and trigger records as the clinic forms submit them; the
# flat medicationName/medicationDose/trigger* fields summarise them.
MEDICATIONS = record(
    'medications',
    required=(text('drugName', max_length=120), text('dosage', max_length=60)),
    optional=(text('unit', max_length=20), date('startDate'), date('endDate'),
              text('route', max_length=60), text('notes', max_length=500)),
    repeated=True,
)

TRIGGER_SHOT = record(
    'triggerShot',
    required=(date('date'), text('medication', max_length=120)),
    optional=(text('time', max_length=20), text('dosage', max_length=60)),
)


IVF_STAGES = (
    StageDefinition(
        'Stimulation', 1, 'Controlled ovarian stimulation',
        required_fields=(
            choice('protocol', ('Long', 'Short', 'Antagonist', 'Mini', 'Natural', 'Other')),
            date('startDate'),
            text('medicationName', max_length=120),
            number('medicationDose', minimum=0, maximum=1000),
            date('triggerDate'),
            text('triggerMedication', max_length=120),
        ),
        optional_fields=(
            text('protocolDetails', max_length=1000),
            text('antagonistMedication', max_length=120),
            record(
                'monitoring',
                required=(date('date'), count('day', maximum=40), number('endometriumThickness', minimum=0, maximum=30)),
                optional=(count('totalFollicles', maximum=100), count('matureFollicles', maximum=100),
                          number('e2Level', minimum=0), number('lhLevel', minimum=0)),
                repeated=True,
            ),
            MEDICATIONS,
            TRIGGER_SHOT,
            NOTES,
        ),
    ),
    StageDefinition(
        'OocyteRetrieval', 2, 'Oocyte pickup',
        required_fields=(
            date('procedureDate'),
            number('hoursAfterTrigger', minimum=0, maximum=48),
            choice('anesthesiaType', ('IV sedation', 'General', 'Local', 'None')),
            count('totalOocytesRetrieved', maximum=100),
            record('oocyteClassification', required=(
                count('mii', maximum=100), count('mi', maximum=100),
                count('gv', maximum=100), count('atretic', maximum=100),
            )),
        ),
        optional_fields=(PERFORMED_BY, COMPLICATION, count('recoveryTime', maximum=1440), NOTES),
    ),
    StageDefinition(
        'Fertilization', 3, 'Fertilization',
        required_fields=(
            date('fertilizationDate'),
            choice('method', ('IVF', 'ICSI', 'Mixed')),
            count('oocytesInseminated', maximum=100),
            count('twoPN', maximum=100),
            number('fertilizationRate', minimum=0, maximum=100),
        ),
        optional_fields=(
            choice('spermSampleType', ('Fresh', 'Frozen', 'TESA', 'PESA', 'Donor')),
            count('onePN', maximum=100),
            count('threePN', maximum=100),
            count('zeroPN', maximum=100),
            NOTES,
        ),
    ),
    StageDefinition(
        'EmbryoCulture', 4, 'Embryo culture',
        required_fields=(
            date('cultureStartDate'),
            text('cultureSystem', max_length=120),
            count('totalEmbryos', maximum=100),
            count('goodQuality', maximum=100),
        ),
        optional_fields=(
            count('fairQuality', maximum=100),
            count('poorQuality', maximum=100),
            count('arrested', maximum=100),
            record(
                'dailyAssessment',
                required=(number('day', minimum=1, maximum=7, integer=True), date('date')),
                optional=(count('embryosDeveloping', maximum=100), text('grade', max_length=20)),
                repeated=True,
            ),
            NOTES,
        ),
    ),
    StageDefinition(
        'EmbryoTransfer', 5, 'Embryo transfer',
        required_fields=(
            date('transferDate'),
            choice('transferType', ('Fresh', 'Frozen', 'Blastocyst', 'Cleavage')),
            number('dayOfTransfer', minimum=1, maximum=7, integer=True),
            number('numberOfEmbryosTransferred', minimum=1, maximum=4, integer=True),
            choice('difficulty', DIFFICULTIES),
            number('endometriumThickness', minimum=0, maximum=30),
        ),
        optional_fields=(
            text('catheterType', max_length=120),
            flag('ultrasoundGuidance'),
            count('numberOfEmbryosFrozen', maximum=100),
            PERFORMED_BY,
            COMPLICATION,
            NOTES,
        ),
    ),
    StageDefinition(
        'PregnancyOutcome', 6, 'Pregnancy test and outcome',
        required_fields=(
            date('testDate'),
            count('daysPostTransfer', maximum=60),
            number('betaHCG', minimum=0, maximum=1_000_000),
            choice('result', PREGNANCY_RESULTS),
        ),
        optional_fields=(
            choice('outcome', CLINICAL_OUTCOMES),
            flag('patientNotified'),
            date('notificationDate'),
            record(
                'repeatTests',
                required=(date('date'), number('betaHCG', minimum=0, maximum=1_000_000)),
                optional=(number('doublingTime', minimum=0),),
                repeated=True,
            ),
            NOTES,
        ),
    ),
)


IUI_STAGES = (
    StageDefinition(
        'Stimulation', 1, 'Ovulation induction',
        required_fields=(
            date('startDate'),
            text('medicationName', max_length=120),
            number('medicationDose', minimum=0, maximum=1000),
            date('triggerDate'),
        ),
        optional_fields=(
            text('triggerMedication', max_length=120),
            record(
                'ultrasoundResults',
                required=(date('date'), count('day', maximum=40), number('endometriumThickness', minimum=0, maximum=30)),
                optional=(count('rightFollicles', maximum=50), count('leftFollicles', maximum=50),
                          number('dominantSize', minimum=0, maximum=40)),
                repeated=True,
            ),
            MEDICATIONS,
            TRIGGER_SHOT,
            NOTES,
        ),
    ),
    StageDefinition(
        'SpermPreparation', 2, 'Sperm preparation',
        required_fields=(
            date('collectionDate'),
            text('processingMethod', max_length=120),
            number('concentration', minimum=0, maximum=1000),
            number('progressiveMotility', minimum=0, maximum=100),
        ),
        optional_fields=(
            number('volume', minimum=0, maximum=20),
            number('totalMotility', minimum=0, maximum=100),
            number('normalMorphology', minimum=0, maximum=100),
            NOTES,
        ),
    ),
    StageDefinition(
        'Insemination', 3, 'Intrauterine insemination',
        required_fields=(
            date('procedureDate'),
            number('hoursAfterTrigger', minimum=0, maximum=72),
            choice('placementLocation', ('Intrauterine', 'Intracervical')),
        ),
        optional_fields=(
            PERFORMED_BY,
            text('catheterType', max_length=120),
            choice('difficulty', DIFFICULTIES),
            choice('patientTolerance', ('Good', 'Fair', 'Poor')),
            COMPLICATION,
            NOTES,
        ),
    ),
    StageDefinition(
        'PregnancyOutcome', 4, 'Pregnancy test and outcome',
        required_fields=(
            date('testDate'),
            count('daysPostInsemination', maximum=60),
            number('betaHCG', minimum=0, maximum=1_000_000),
            choice('result', PREGNANCY_RESULTS),
        ),
        optional_fields=(
            choice('outcome', CLINICAL_OUTCOMES),
            flag('patientNotified'),
            NOTES,
        ),
    ),
)


PROTOCOLS = {
    'IVF': IVF_STAGES,
    'IUI': IUI_STAGES,
}
