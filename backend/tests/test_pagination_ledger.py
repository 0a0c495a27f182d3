"""Tests for PaginationLedger absolute page accounting."""

import pytest

from bookreader.models.progress import NavigationPosition, PageCountProvenance
from bookreader.services.pagination_ledger import PaginationLedger

MEASURED = PageCountProvenance.MEASURED
ESTIMATED = PageCountProvenance.ESTIMATED


def measured_ledger(counts: list[int]) -> PaginationLedger:
    ledger = PaginationLedger(len(counts))
    for index, count in enumerate(counts):
        ledger.record_page_count(index, count, MEASURED)
    return ledger


class TestAbsolutePages:
    def test_absolute_page_and_total(self):
        """Measured counts [2, 3, 1]: chapter 1 page 1 is page 4 of 6"""
        ledger = measured_ledger([2, 3, 1])

        assert ledger.absolute_page(NavigationPosition(1, 1)) == 4
        assert ledger.total_pages() == 6

    def test_first_page_is_one(self):
        ledger = measured_ledger([2, 3, 1])

        assert ledger.absolute_page(NavigationPosition(0, 0)) == 1

    def test_unknown_earlier_chapters_count_as_zero(self):
        ledger = PaginationLedger(3)
        ledger.record_page_count(1, 3, MEASURED)

        assert ledger.absolute_page(NavigationPosition(2, 0)) == 4
        assert ledger.total_pages() == 3

    def test_round_trip_under_full_measurement(self):
        """
        pageAndChapter inverts absolutePage only once every chapter up to the
        position has a measured count.
        """
        ledger = measured_ledger([2, 3, 1, 4])
        assert ledger.is_fully_measured()

        for chapter_index, count in enumerate([2, 3, 1, 4]):
            for sub_page in range(count):
                position = NavigationPosition(chapter_index, sub_page)
                assert ledger.page_and_chapter(ledger.absolute_page(position)) == position


class TestPageAndChapter:
    def test_legacy_absolute_page(self):
        ledger = measured_ledger([2, 3, 1])

        assert ledger.page_and_chapter(4) == NavigationPosition(1, 1)

    def test_beyond_known_total_clamps_to_last_known_page(self):
        ledger = PaginationLedger(4)
        ledger.record_page_count(0, 2, MEASURED)
        ledger.record_page_count(1, 3, MEASURED)

        assert ledger.page_and_chapter(50) == NavigationPosition(1, 2)

    def test_nothing_known(self):
        assert PaginationLedger(3).page_and_chapter(7) == NavigationPosition(0, 0)

    def test_non_positive_page_is_first_page(self):
        ledger = measured_ledger([2, 3])

        assert ledger.page_and_chapter(0) == NavigationPosition(0, 0)

    def test_unknown_chapters_are_skipped(self):
        ledger = PaginationLedger(3)
        ledger.record_page_count(0, 2, MEASURED)
        ledger.record_page_count(2, 2, MEASURED)

        assert ledger.page_and_chapter(3) == NavigationPosition(2, 0)


class TestRecordPageCount:
    def test_measurement_overwrites_estimate(self):
        ledger = PaginationLedger(2)
        ledger.record_page_count(0, 5, ESTIMATED)
        ledger.record_page_count(0, 3, MEASURED)

        assert ledger.page_count(0) == 3
        assert ledger.provenance_of(0) is MEASURED

    def test_remeasurement_overwrites_measurement(self):
        ledger = PaginationLedger(1)
        ledger.record_page_count(0, 3, MEASURED)
        ledger.record_page_count(0, 6, MEASURED)

        assert ledger.page_count(0) == 6

    def test_out_of_range_chapter_ignored(self):
        ledger = PaginationLedger(2)
        ledger.record_page_count(5, 3, MEASURED)

        assert ledger.total_pages() == 0

    def test_zero_count_raised_to_one(self):
        ledger = PaginationLedger(1)
        ledger.record_page_count(0, 0, MEASURED)

        assert ledger.page_count(0) == 1


class TestEstimates:
    def test_estimates_from_size(self):
        ledger = PaginationLedger(3)

        estimated = ledger.estimate_page_counts({0: 0, 1: 4500, 2: 2000}, 2000)

        assert estimated == 3
        assert [ledger.page_count(i) for i in range(3)] == [1, 3, 1]
        assert ledger.provenance_of(1) is ESTIMATED
        assert not ledger.is_fully_measured()

    def test_estimates_never_replace_measurements(self):
        ledger = PaginationLedger(2)
        ledger.record_page_count(0, 7, MEASURED)

        ledger.estimate_page_counts({0: 100, 1: 100}, 2000)

        assert ledger.page_count(0) == 7
        assert ledger.provenance_of(0) is MEASURED
        assert ledger.provenance_of(1) is ESTIMATED

    def test_total_moves_as_estimates_are_measured(self):
        ledger = PaginationLedger(2)
        ledger.estimate_page_counts({0: 4000, 1: 4000}, 2000)
        assert ledger.total_pages() == 4

        ledger.record_page_count(1, 5, MEASURED)

        assert ledger.total_pages() == 7


class TestPercentComplete:
    def test_percent_of_known_total(self):
        ledger = measured_ledger([2, 3, 1])

        assert ledger.percent_complete(NavigationPosition(2, 0)) == pytest.approx(100.0)
        assert ledger.percent_complete(NavigationPosition(0, 0)) == pytest.approx(100 / 6)

    def test_unknown_current_chapter_counts_as_one_page(self):
        ledger = PaginationLedger(2)
        ledger.record_page_count(0, 3, MEASURED)

        assert ledger.percent_complete(NavigationPosition(1, 0)) == pytest.approx(100.0)
        assert ledger.percent_complete(NavigationPosition(0, 0)) == pytest.approx(100 / 3)

    def test_empty_book(self):
        assert PaginationLedger(0).percent_complete(NavigationPosition(0, 0)) == 0.0
