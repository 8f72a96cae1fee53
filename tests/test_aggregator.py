"""
Tests for src/scoring/aggregator.py - batch statistics.
"""

from dataclasses import replace

import pytest

from src.errors import InputError
from src.models import MetaScoring
from src.scoring.aggregator import aggregate, unique_blockers


def with_score(payload, value):
    return replace(payload, scoring=MetaScoring(circularity_performance_score=value))


class TestAggregate:
    def test_score_buckets(self, make_payload):
        payloads = [with_score(make_payload(), value) for value in (90, 60, 40, 85)]
        stats = aggregate(payloads)

        assert stats.total_products == 4
        assert stats.avg_score == 69
        assert stats.compliant_count == 2
        assert stats.partial_count == 1
        assert stats.to_review_count == 1

    def test_bucket_boundaries(self, make_payload):
        payloads = [with_score(make_payload(), value) for value in (80, 50, 49)]
        stats = aggregate(payloads)
        assert (stats.compliant_count, stats.partial_count, stats.to_review_count) == (1, 1, 1)

    def test_empty_batch_rejected(self):
        with pytest.raises(InputError):
            aggregate([])

    def test_issue_counts(self, make_payload):
        payloads = [
            make_payload(),
            make_payload(
                {
                    "agec_compliance.traceability.dyeing_printing_country": None,
                    "agec_compliance.recyclability.is_majority_recyclable": False,
                    "agec_compliance.hazardous_substances.contains_svhc": True,
                    "agec_compliance.material_analysis.microplastic_warning_required": True,
                    "agec_compliance.material_analysis.recycled_content_percentage": 10,
                }
            ),
            make_payload({"agec_compliance.material_analysis.recycled_content_percentage": 0}),
        ]
        stats = aggregate(payloads)

        assert stats.missing_traceability == 1
        assert stats.not_recyclable == 1
        assert stats.has_svhc == 1
        assert stats.needs_microplastic_warning == 1
        assert stats.has_recycled_content == 2
        assert stats.has_high_recycled == 1

    def test_pcds_counts_and_completeness(self, make_payload):
        payloads = [
            make_payload(),
            make_payload(
                {
                    "iso_59040_pcds.section_2_inputs.statement_2503_post_consumer": False,
                    "iso_59040_pcds.section_3_better_use.statement_3000_repairable": False,
                    "iso_59040_pcds.section_5_end_of_life.statement_5032_closed_loop": False,
                }
            ),
        ]
        stats = aggregate(payloads)

        assert stats.has_post_consumer_recycled == 1
        assert stats.has_reach_compliant == 2
        assert stats.has_repairable == 1
        assert stats.has_closed_loop == 1
        # (100 + 25) / 2 = 62.5
        assert stats.pcds_completeness == 63

    def test_inputs_are_not_mutated(self, make_payload):
        payloads = [with_score(make_payload(), 70)]
        aggregate(payloads)
        assert payloads[0].scoring.circularity_performance_score == 70


class TestBlockers:
    def test_deduplicated_in_first_seen_order(self, make_payload):
        payloads = [
            make_payload({"agec_compliance.recyclability.blockers": ["Elastane > 5%", "Membrane"]}),
            make_payload({"agec_compliance.recyclability.blockers": ["Membrane", "DWR coating"]}),
        ]
        assert unique_blockers(payloads) == ["Elastane > 5%", "Membrane", "DWR coating"]

    def test_display_limit(self, make_payload):
        payloads = [
            make_payload({"agec_compliance.recyclability.blockers": [f"Blocker {i}" for i in range(15)]})
        ]
        stats = aggregate(payloads, blocker_limit=10)

        assert len(stats.blockers) == 10
        assert stats.blockers[0] == "Blocker 0"
