from smsledger.models.extraction import ExtractionResult
from smsledger.pipelines.field_extractor import extract


# coarse bands, not a probability
AMOUNT_CONFIDENCE = 0.6
DIRECTION_ONLY_CONFIDENCE = 0.3
FORWARD_THRESHOLD = AMOUNT_CONFIDENCE


def score(result: ExtractionResult) -> ExtractionResult:
    if result.amount is not None:
        confidence = AMOUNT_CONFIDENCE
    elif result.direction != "unknown":
        confidence = DIRECTION_ONLY_CONFIDENCE
    else:
        return result.model_copy(update={"is_transaction": False, "confidence": 0.0})
    return result.model_copy(update={"is_transaction": True, "confidence": confidence})


def classify(body: str) -> ExtractionResult:
    """
    Extract + confidence.
    Returns: ExtractionResult with is_transaction False for noise (never raises)
    """
    return score(extract(body))
