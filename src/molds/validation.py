"""Identifier derivation and input validation for registry operations."""

from __future__ import annotations

from dataclasses import dataclass

from molds.errors import ValidationError

MOLD_ID_SEPARATOR = "-"
MAX_TEXT_LENGTH = 200


@dataclass(frozen=True)
class MoldCreateInput:
    """Validated payload for registering a mold."""

    mold_id: str
    model: str
    name: str
    max_shots: int


def derive_mold_id(model: str, asset_suffix: str) -> str:
    """Compose the mold id as ``{model}-{asset_suffix}``."""
    return f"{model}{MOLD_ID_SEPARATOR}{asset_suffix}"


def require_text(field: str, value: object) -> str:
    """Return a stripped non-blank string or raise ValidationError."""
    if not isinstance(value, str):
        raise ValidationError(field, "must be a string")
    normalized = value.strip()
    if not normalized:
        raise ValidationError(field, "must not be blank")
    if len(normalized) > MAX_TEXT_LENGTH:
        raise ValidationError(field, f"must be at most {MAX_TEXT_LENGTH} characters")
    return normalized


def _require_int(field: str, value: object) -> int:
    """Return value when it is a real integer (bools are rejected)."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(field, "must be an integer")
    return value


def validate_max_shots(value: object) -> int:
    """Ensure the designed lifetime is a positive integer."""
    max_shots = _require_int("max_shots", value)
    if max_shots < 1:
        raise ValidationError("max_shots", "must be a positive integer")
    return max_shots


def validate_shots_added(value: object) -> int:
    """Ensure the shots recorded on return are a non-negative integer."""
    shots_added = _require_int("shots_added", value)
    if shots_added < 0:
        raise ValidationError("shots_added", "must not be negative")
    return shots_added


def validate_mold_creation(
    *,
    model: object,
    asset_suffix: object,
    name: object,
    max_shots: object,
) -> MoldCreateInput:
    """Validate and normalize a create request."""
    normalized_model = require_text("model", model)
    normalized_suffix = require_text("asset_suffix", asset_suffix)
    mold_id = derive_mold_id(normalized_model, normalized_suffix)
    if len(mold_id) > MAX_TEXT_LENGTH:
        raise ValidationError("mold_id", f"must be at most {MAX_TEXT_LENGTH} characters")
    return MoldCreateInput(
        mold_id=mold_id,
        model=normalized_model,
        name=require_text("name", name),
        max_shots=validate_max_shots(max_shots),
    )
