"""Cost estimation for image generation and editing.

Costs are approximate per-image USD figures from a static table.  They are
non-authoritative display values: the server echoes them in responses and
the Python client computes them before a call, both through this module, so
the two can only differ when their quality inputs differ.

Every ``(model, quality)`` pair resolves to a positive value:

- unknown quality falls back to the model's medium/standard tier;
- unknown model falls back to :data:`DEFAULT_COST`.
"""

from __future__ import annotations

# Approximate cost per image by model and UI quality.
IMAGE_COSTS: dict[str, dict[str, float]] = {
    "dall-e-3": {
        "standard": 0.040,
        "high": 0.080,  # HD
    },
    "gpt-image-1": {
        "low": 0.020,
        "medium": 0.070,
        "high": 0.190,
        "auto": 0.070,  # billed like medium
        "standard": 0.020,  # same as low
    },
}

# Edits always run on gpt-image-1 and default to the low tier.
EDIT_COSTS: dict[str, float] = {
    "low": 0.020,
    "medium": 0.070,
    "high": 0.190,
    "auto": 0.070,
    "standard": 0.020,
}
DEFAULT_EDIT_COST = 0.020

# Tier used when the quality value is not in the model's table.
_FALLBACK_TIER = {"dall-e-3": "standard", "gpt-image-1": "medium"}

DEFAULT_COST = 0.05


def estimate(model: str, quality: str) -> float:
    """Return the estimated USD cost of one generated image.

    Args:
        model: ``"dall-e-3"`` or ``"gpt-image-1"``.
        quality: UI quality value.  For dall-e-3 anything other than
            ``high``/``hd`` is the standard tier.

    Returns:
        A positive cost in USD.
    """
    if model == "dall-e-3":
        tier = "high" if quality in ("high", "hd") else "standard"
        return IMAGE_COSTS["dall-e-3"][tier]

    table = IMAGE_COSTS.get(model)
    if table is None:
        return DEFAULT_COST
    return table.get(quality, table[_FALLBACK_TIER[model]])


def estimate_edit(quality: str = "standard") -> float:
    """Return the estimated USD cost of one image edit."""
    return EDIT_COSTS.get(quality, DEFAULT_EDIT_COST)


def format_cost(cost: float) -> str:
    """Format a cost as ``$X.XXX``."""
    return f"${cost:.3f}"
