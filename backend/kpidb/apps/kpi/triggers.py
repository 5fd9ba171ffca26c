"""
Trigger rules: KPI percentages + overall score -> action tags.

The rules overlap on purpose (the ``< 55`` rule repeats consequences of the
lower bands). Every rule is evaluated independently, the results are
concatenated, and duplicates are dropped by tag identity keeping the first
occurrence. Downstream factories rely on each tag appearing once.
"""

from __future__ import annotations

import enum
from typing import Iterable, List, Mapping

from ..notifications.models import NotificationTemplate


class ActionTag(str, enum.Enum):
    REWARD = "reward"
    AUDIT_CALL = "audit_call"
    CROSS_CHECK_3_MONTHS = "cross_check_3_months"
    BASIC_TRAINING = "basic_training"
    DUMMY_AUDIT = "dummy_audit"
    WARNING_LETTER = "warning_letter"
    NEGATIVITY_TRAINING = "negativity_training"
    DOS_DONTS_TRAINING = "dos_donts_training"
    RCA_COMPLAINTS = "rca_complaints"
    APP_USAGE_TRAINING = "app_usage_training"
    CROSS_VERIFY_INSUFF = "cross_verify_insuff"


TRAINING_TAGS = frozenset(
    {
        ActionTag.BASIC_TRAINING,
        ActionTag.NEGATIVITY_TRAINING,
        ActionTag.DOS_DONTS_TRAINING,
        ActionTag.APP_USAGE_TRAINING,
    }
)

AUDIT_TAGS = frozenset(
    {
        ActionTag.AUDIT_CALL,
        ActionTag.CROSS_CHECK_3_MONTHS,
        ActionTag.DUMMY_AUDIT,
        ActionTag.CROSS_VERIFY_INSUFF,
        ActionTag.RCA_COMPLAINTS,
    }
)

_LOW_SCORE_ACTIONS = [
    ActionTag.BASIC_TRAINING,
    ActionTag.AUDIT_CALL,
    ActionTag.CROSS_CHECK_3_MONTHS,
    ActionTag.DUMMY_AUDIT,
]


def _band_rules(score: int) -> List[ActionTag]:
    if score >= 85:
        return [ActionTag.REWARD]
    if score >= 70:
        return [ActionTag.AUDIT_CALL]
    if score >= 50:
        return [ActionTag.AUDIT_CALL, ActionTag.CROSS_CHECK_3_MONTHS]
    if score >= 40:
        return list(_LOW_SCORE_ACTIONS)
    return [*_LOW_SCORE_ACTIONS, ActionTag.WARNING_LETTER]


def evaluate_triggers(percentages: Mapping[str, float], overall_score: int) -> List[ActionTag]:
    """
    Return the deduplicated action tags for one KPI submission.

    ``percentages`` uses the metric names of ``scoring.METRICS``.
    """
    major_negativity = float(percentages["major_negativity"])
    negativity = float(percentages["negativity"])
    quality = float(percentages["quality"])
    app_usage = float(percentages["app_usage"])
    insufficiency = float(percentages["insufficiency"])

    tags: List[ActionTag] = _band_rules(overall_score)

    if overall_score < 55:
        tags.extend(_LOW_SCORE_ACTIONS)

    if major_negativity > 0 and negativity < 25:
        tags.extend(
            [
                ActionTag.NEGATIVITY_TRAINING,
                ActionTag.AUDIT_CALL,
                ActionTag.CROSS_CHECK_3_MONTHS,
            ]
        )

    if quality > 1:
        tags.extend(
            [
                ActionTag.DOS_DONTS_TRAINING,
                ActionTag.AUDIT_CALL,
                ActionTag.CROSS_CHECK_3_MONTHS,
                ActionTag.RCA_COMPLAINTS,
            ]
        )

    if app_usage < 80:
        tags.append(ActionTag.APP_USAGE_TRAINING)

    if insufficiency > 2:
        tags.append(ActionTag.CROSS_VERIFY_INSUFF)

    return list(dict.fromkeys(tags))


def _as_tags(tags: Iterable[str]) -> List[ActionTag]:
    return [ActionTag(tag) for tag in tags]


def training_tags(tags: Iterable[str]) -> List[ActionTag]:
    return [tag for tag in _as_tags(tags) if tag in TRAINING_TAGS]


def audit_tags(tags: Iterable[str]) -> List[ActionTag]:
    return [tag for tag in _as_tags(tags) if tag in AUDIT_TAGS]


def notification_templates(tags: Iterable[str]) -> List[NotificationTemplate]:
    tags = _as_tags(tags)
    templates = [NotificationTemplate.KPI_NOTIFICATION]
    if training_tags(tags):
        templates.append(NotificationTemplate.TRAINING_ASSIGNMENT)
    if audit_tags(tags):
        templates.append(NotificationTemplate.AUDIT_NOTIFICATION)
    if ActionTag.WARNING_LETTER in tags:
        templates.append(NotificationTemplate.WARNING_LETTER)
    return templates
