from __future__ import annotations

from kpidb.apps.kpi.triggers import (
    ActionTag,
    audit_tags,
    evaluate_triggers,
    notification_templates,
    training_tags,
)
from kpidb.apps.notifications.models import NotificationTemplate

CLEAN = {
    "tat": 96,
    "major_negativity": 0,
    "quality": 0,
    "neighbor_check": 95,
    "negativity": 5,
    "app_usage": 95,
    "insufficiency": 0.5,
}


def test_high_score_only_rewards():
    assert evaluate_triggers(CLEAN, 92) == [ActionTag.REWARD]


def test_low_score_rule_overlaps_band_without_duplicates():
    tags = evaluate_triggers(CLEAN, 52)

    assert tags == [
        ActionTag.AUDIT_CALL,
        ActionTag.CROSS_CHECK_3_MONTHS,
        ActionTag.BASIC_TRAINING,
        ActionTag.DUMMY_AUDIT,
    ]


def test_mixed_month_collects_every_rule():
    percentages = {
        "tat": 96,
        "major_negativity": 2.0,
        "quality": 0.5,
        "neighbor_check": 50,
        "negativity": 10,
        "app_usage": 50,
        "insufficiency": 3,
    }

    tags = evaluate_triggers(percentages, 45)

    assert tags == [
        ActionTag.BASIC_TRAINING,
        ActionTag.AUDIT_CALL,
        ActionTag.CROSS_CHECK_3_MONTHS,
        ActionTag.DUMMY_AUDIT,
        ActionTag.NEGATIVITY_TRAINING,
        ActionTag.APP_USAGE_TRAINING,
        ActionTag.CROSS_VERIFY_INSUFF,
    ]
    assert len(tags) == len(set(tags))


def test_warning_letter_below_forty():
    tags = evaluate_triggers(CLEAN, 30)

    assert ActionTag.WARNING_LETTER in tags
    assert ActionTag.REWARD not in tags


def test_quality_complaints_pull_in_rca():
    tags = evaluate_triggers({**CLEAN, "quality": 1.5}, 75)

    assert tags == [
        ActionTag.AUDIT_CALL,
        ActionTag.DOS_DONTS_TRAINING,
        ActionTag.CROSS_CHECK_3_MONTHS,
        ActionTag.RCA_COMPLAINTS,
    ]


def test_major_negativity_ignored_when_general_negativity_is_high():
    tags = evaluate_triggers({**CLEAN, "major_negativity": 1.0, "negativity": 30}, 88)

    assert ActionTag.NEGATIVITY_TRAINING not in tags


def test_tag_partitions_and_templates():
    tags = ["basic_training", "audit_call", "dummy_audit", "warning_letter"]

    assert training_tags(tags) == [ActionTag.BASIC_TRAINING]
    assert audit_tags(tags) == [ActionTag.AUDIT_CALL, ActionTag.DUMMY_AUDIT]
    assert notification_templates(tags) == [
        NotificationTemplate.KPI_NOTIFICATION,
        NotificationTemplate.TRAINING_ASSIGNMENT,
        NotificationTemplate.AUDIT_NOTIFICATION,
        NotificationTemplate.WARNING_LETTER,
    ]
    assert notification_templates(["reward"]) == [NotificationTemplate.KPI_NOTIFICATION]
