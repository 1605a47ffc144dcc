"""
Image-scoring criteria for crown-rump length (CRL) measurement.

Reference: Table 1 of https://obgyn.onlinelibrary.wiley.com/doi/10.1002/uog.13376
"""

from dataclasses import dataclass
from typing import List, Tuple


@dataclass(frozen=True)
class Criterion:
    name: str
    column: str
    description: str


CRITERIA: Tuple[Criterion, ...] = (
    Criterion(
        name="Mid-sagittal section",
        column="Mid-sagittal_section",
        description="Midline facial profile, fetal spine and rump should all be visible "
                    "in one complete image",
    ),
    Criterion(
        name="Neutral position",
        column="Neutral_position",
        description="There should be fluid visible between the chin and the chest of the "
                    "fetus and the 'profile line' should form an acute angle with the CRL "
                    "line before the rump",
    ),
    Criterion(
        name="Horizontal orientation",
        column="Horizontal_orientation",
        description="Fetus should be horizontal with line connecting crown and rump "
                    "positioned between 75° and 105° to ultrasound beam",
    ),
    Criterion(
        name="Crown and rump clearly visible",
        column="Crown_and_rump_clearly_visible",
        description="Crown and rump should both be clearly visible",
    ),
    Criterion(
        name="Correct caliper placement",
        column="Correct_caliper_placement",
        description="Intersection of calipers should be on outer border of skin covering "
                    "skull and outer border of skin covering rump",
    ),
    Criterion(
        name="Good magnification",
        column="Magnification",
        description="Fetus should fill more than two-thirds of image, clearly showing "
                    "crown and rump",
    ),
)

CRITERIA_COUNT = len(CRITERIA)
SCORE_VALUES = (0, 1)

LEDGER_COLUMNS: List[str] = (
    ["timestamp", "userEmail", "imageId", "imageName"]
    + [criterion.column for criterion in CRITERIA]
    + ["comments"]
)

LEDGER_HEADER = ",".join(LEDGER_COLUMNS)
