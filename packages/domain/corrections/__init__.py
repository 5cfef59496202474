"""
Corrections Module - learning from user edits to receipt text and tax codes
"""

from packages.domain.corrections.correction_service import (
    CorrectionService,
    correction_service,
    similar_text,
)
from packages.domain.corrections.schemas import (
    CorrectionFields,
    CorrectionOut,
    MatchType,
    TaxMeaningInput,
    TaxRuleOut,
)

__all__ = [
    'CorrectionService',
    'correction_service',
    'similar_text',
    'CorrectionFields',
    'CorrectionOut',
    'MatchType',
    'TaxMeaningInput',
    'TaxRuleOut',
]
