"""Stage payloads that satisfy the IVF and IUI registries."""
from datetime import datetime, timedelta, timezone

IVF_STAGE_DATA = {
    'Stimulation': {
        'protocol': 'Antagonist',
        'startDate': '2024-03-01',
        'medicationName': 'Gonal-F',
        'medicationDose': 150,
        'triggerDate': '2024-03-11',
        'triggerMedication': 'Ovitrelle',
    },
    'OocyteRetrieval': {
        'procedureDate': '2024-03-13',
        'hoursAfterTrigger': 36,
        'anesthesiaType': 'IV sedation',
        'totalOocytesRetrieved': 12,
        'oocyteClassification': {'mii': 9, 'mi': 2, 'gv': 1, 'atretic': 0},
    },
    'Fertilization': {
        'fertilizationDate': '2024-03-13',
        'method': 'ICSI',
        'oocytesInseminated': 9,
        'twoPN': 7,
        'fertilizationRate': 77.8,
    },
    'EmbryoCulture': {
        'cultureStartDate': '2024-03-14',
        'cultureSystem': 'Time-lapse',
        'totalEmbryos': 7,
        'goodQuality': 3,
    },
    'EmbryoTransfer': {
        'transferDate': '2024-03-18',
        'transferType': 'Blastocyst',
        'dayOfTransfer': 5,
        'numberOfEmbryosTransferred': 1,
        'difficulty': 'Easy',
        'endometriumThickness': 9.5,
    },
    'PregnancyOutcome': {
        'testDate': '2024-03-30',
        'daysPostTransfer': 12,
        'betaHCG': 245.0,
        'result': 'Positive',
    },
}

IUI_STAGE_DATA = {
    'Stimulation': {
        'startDate': '2024-05-02',
        'medicationName': 'Clomiphene',
        'medicationDose': 50,
        'triggerDate': '2024-05-12',
    },
    'SpermPreparation': {
        'collectionDate': '2024-05-13',
        'processingMethod': 'Density gradient',
        'concentration': 35,
        'progressiveMotility': 48,
    },
    'Insemination': {
        'procedureDate': '2024-05-13',
        'hoursAfterTrigger': 36,
        'placementLocation': 'Intrauterine',
    },
    'PregnancyOutcome': {
        'testDate': '2024-05-27',
        'daysPostInsemination': 14,
        'betaHCG': 3.1,
        'result': 'Negative',
    },
}


class TickingClock:
    """Returns a strictly increasing UTC timestamp on every call."""

    def __init__(self, start=datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self):
        self.now += timedelta(seconds=1)
        return self.now
