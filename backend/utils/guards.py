from fastapi import HTTPException
from bson import ObjectId
from bson.errors import InvalidId

from utils.order_transitions import TransitionOutcome, TransitionResult

# -------------------------------
# ObjectId Guard
# -------------------------------

def parse_object_id(value: str, name: str = "id") -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=400, detail=f"Invalid {name}")


# -------------------------------
# Transition result Guard
# -------------------------------

OUTCOME_STATUS_CODES = {
    TransitionOutcome.NOT_FOUND: 404,
    TransitionOutcome.ALREADY_PROCESSED: 409,
    TransitionOutcome.CONFLICT: 409,
    TransitionOutcome.NOT_ELIGIBLE: 400,
    TransitionOutcome.WAYBILL_REQUIRED: 422,
}


def raise_for_outcome(result: TransitionResult) -> TransitionResult:
    status_code = OUTCOME_STATUS_CODES.get(result.outcome)
    if status_code:
        raise HTTPException(
            status_code=status_code,
            detail={
                "outcome": result.outcome.value,
                "message": result.message or result.outcome.value,
            },
        )
    return result
