# Copyright (c) 2026 Nenad Vasic. All rights reserved.
# Licensed under the Business Source License 1.1 (BSL-1.1)
# See LICENSE file in the project root for full license text.

"""
Score adjustment rules, applied uniformly to every fetched day.

Rules (in order; rule 2 sees happiness as rule 1 left it):
  1. High stress or anxiety (>= 60) caps happiness at 50.
  2. Very high happiness (>= 70) caps stress and anxiety at 40.
"""

from typing import Iterable, List

from wellbeing.schemas import MetricRecord

DISTRESS_THRESHOLD = 60
HAPPINESS_CAP = 50
ELATION_THRESHOLD = 70
DISTRESS_CAP = 40


def apply_rules(record: MetricRecord) -> MetricRecord:
    """Return a rule-adjusted copy of a record. Scores stay in [0, 100]."""
    happiness = record.happiness
    anxiety = record.anxiety
    stress = record.stress

    if (stress >= DISTRESS_THRESHOLD or anxiety >= DISTRESS_THRESHOLD) and happiness > HAPPINESS_CAP:
        happiness = min(HAPPINESS_CAP, happiness)

    if happiness >= ELATION_THRESHOLD:
        stress = min(DISTRESS_CAP, stress)
        anxiety = min(DISTRESS_CAP, anxiety)

    if (happiness, anxiety, stress) == (record.happiness, record.anxiety, record.stress):
        return record
    return record.with_scores(happiness=happiness, anxiety=anxiety, stress=stress)


def apply_all(records: Iterable[MetricRecord]) -> List[MetricRecord]:
    return [apply_rules(r) for r in records]
