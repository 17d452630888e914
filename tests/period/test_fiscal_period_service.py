"""
Fiscal period lifecycle and document numbering tests.

Verifies:
- Periods created from a YYYY/YY name carry dual-calendar bounds and
  document prefixes
- Names are unique per tenant, not globally
- Exactly one current period per tenant
- Close / reopen round trip and its audit fields
- Deletion is refused for current, closed and referenced periods
- Document numbers are sequential, per type, and never issued by a
  closed period
"""

from datetime import date
from uuid import uuid4

import pytest

from fiscal_ledger.domain.dtos import DocumentType
from fiscal_ledger.exceptions import (
    ClosedPeriodError,
    DuplicatePeriodNameError,
    InvalidDateRangeError,
    InvalidPeriodNameError,
    PeriodAlreadyClosedError,
    PeriodDeletionError,
    PeriodNotClosedError,
    PeriodNotFoundError,
    UnsupportedCalendarYearError,
)
from fiscal_ledger.services.period_service import document_prefixes, format_document_number


class TestPeriodCreation:
    def test_create_from_name(self, period_service, tenant_id, test_actor_id):
        period = period_service.create_from_name(tenant_id, "2082/83", test_actor_id)

        assert period.name == "2082/83"
        assert period.start_date == date(2025, 7, 16)
        assert period.end_date == date(2026, 7, 15)
        assert period.start_date_bs == "2082-04-01"
        assert period.end_date_bs == "2083-03-32"
        assert period.is_current is False
        assert period.is_closed is False
        assert period.closed_at is None

    def test_prefixes_derived_from_name(self, fiscal_period):
        assert fiscal_period.invoice_prefix == "INV-8283-"
        assert fiscal_period.purchase_prefix == "PUR-8283-"
        assert fiscal_period.voucher_prefix == "JV-8283-"
        assert (
            fiscal_period.last_invoice_num,
            fiscal_period.last_purchase_num,
            fiscal_period.last_voucher_num,
        ) == (0, 0, 0)

    def test_create_with_explicit_dates(self, period_service, tenant_id):
        period = period_service.create(
            tenant_id, "Q1-82", date(2025, 7, 16), date(2025, 10, 17)
        )

        assert period.start_date_bs == "2082-04-01"
        assert period.start_date == date(2025, 7, 16)
        # Names shorter than seven characters are used verbatim in prefixes
        assert period.invoice_prefix == "INV-Q1-82-"

    def test_start_after_end_rejected(self, period_service, tenant_id):
        with pytest.raises(InvalidDateRangeError):
            period_service.create(tenant_id, "bad", date(2025, 8, 1), date(2025, 7, 1))

    def test_single_day_period_allowed(self, period_service, tenant_id):
        period = period_service.create(tenant_id, "day", date(2025, 8, 1), date(2025, 8, 1))
        assert period.contains(date(2025, 8, 1))

    def test_duplicate_name_rejected(self, period_service, fiscal_period, tenant_id):
        with pytest.raises(DuplicatePeriodNameError):
            period_service.create_from_name(tenant_id, "2082/83")

    def test_same_name_in_another_tenant_allowed(self, period_service, fiscal_period):
        other = period_service.create_from_name(uuid4(), "2082/83")
        assert other.id != fiscal_period.id

    def test_invalid_name_rejected(self, period_service, tenant_id):
        with pytest.raises(InvalidPeriodNameError):
            period_service.create_from_name(tenant_id, "2082-83")

    def test_unsupported_year_rejected(self, period_service, tenant_id):
        with pytest.raises(UnsupportedCalendarYearError):
            period_service.create_from_name(tenant_id, "2095/96")

    def test_creation_is_logged(self, period_service, tenant_id, captured_logs):
        period_service.create_from_name(tenant_id, "2081/82")

        records = [r for r in captured_logs() if r["message"] == "period_created"]
        assert len(records) == 1
        assert records[0]["period_name"] == "2081/82"
        assert records[0]["end_date_bs"] == "2082-03-32"


class TestPrefixHelpers:
    def test_document_prefixes(self):
        assert document_prefixes("2082/83") == {
            DocumentType.INVOICE: "INV-8283-",
            DocumentType.PURCHASE: "PUR-8283-",
            DocumentType.VOUCHER: "JV-8283-",
        }

    def test_number_is_zero_padded(self):
        assert format_document_number("INV-8283-", 7) == "INV-8283-0007"

    def test_number_grows_past_four_digits(self):
        assert format_document_number("INV-8283-", 12345) == "INV-8283-12345"


class TestCurrentPeriod:
    def test_set_as_current(self, period_service, fiscal_period, tenant_id):
        result = period_service.set_as_current(tenant_id, fiscal_period.id)

        assert result.is_current is True
        assert period_service.get_current(tenant_id).id == fiscal_period.id

    def test_switching_clears_previous(self, period_service, tenant_id):
        first = period_service.create_from_name(tenant_id, "2081/82")
        second = period_service.create_from_name(tenant_id, "2082/83")

        period_service.set_as_current(tenant_id, first.id)
        period_service.set_as_current(tenant_id, second.id)

        periods = period_service.list_for_tenant(tenant_id)
        assert [p.name for p in periods if p.is_current] == ["2082/83"]
        assert period_service.get(first.id).is_current is False

    def test_setting_current_twice_is_idempotent(self, period_service, fiscal_period, tenant_id):
        period_service.set_as_current(tenant_id, fiscal_period.id)
        period_service.set_as_current(tenant_id, fiscal_period.id)

        assert period_service.get_current(tenant_id).id == fiscal_period.id

    def test_other_tenant_unaffected(self, period_service, fiscal_period, tenant_id):
        other_tenant = uuid4()
        other = period_service.create_from_name(other_tenant, "2082/83")
        period_service.set_as_current(other_tenant, other.id)
        period_service.set_as_current(tenant_id, fiscal_period.id)

        assert period_service.get_current(other_tenant).id == other.id

    def test_period_of_other_tenant_not_found(self, period_service, fiscal_period):
        with pytest.raises(PeriodNotFoundError):
            period_service.set_as_current(uuid4(), fiscal_period.id)

    def test_no_current_period(self, period_service, fiscal_period, tenant_id):
        assert period_service.get_current(tenant_id) is None

    def test_closed_period_may_be_current(self, period_service, fiscal_period, tenant_id, test_actor_id):
        period_service.close(fiscal_period.id, test_actor_id)
        result = period_service.set_as_current(tenant_id, fiscal_period.id)

        assert result.is_current and result.is_closed


class TestCloseAndReopen:
    def test_close_records_actor_and_time(
        self, period_service, fiscal_period, test_actor_id, deterministic_clock
    ):
        closed = period_service.close(fiscal_period.id, test_actor_id)

        assert closed.is_closed is True
        assert closed.closed_by_id == test_actor_id
        assert closed.closed_at == deterministic_clock.now()

    def test_close_twice_rejected(self, period_service, fiscal_period, test_actor_id):
        period_service.close(fiscal_period.id, test_actor_id)

        with pytest.raises(PeriodAlreadyClosedError):
            period_service.close(fiscal_period.id, test_actor_id)

    def test_reopen_clears_closing_fields(self, period_service, fiscal_period, test_actor_id):
        period_service.close(fiscal_period.id, test_actor_id)
        reopened = period_service.reopen(fiscal_period.id, test_actor_id)

        assert reopened.is_closed is False
        assert reopened.closed_at is None
        assert reopened.closed_by_id is None

    def test_reopen_open_period_rejected(self, period_service, fiscal_period):
        with pytest.raises(PeriodNotClosedError):
            period_service.reopen(fiscal_period.id)

    def test_close_unknown_period(self, period_service, test_actor_id):
        with pytest.raises(PeriodNotFoundError):
            period_service.close(uuid4(), test_actor_id)


class TestDeletion:
    def test_delete_open_unreferenced_period(self, period_service, fiscal_period):
        period_service.delete(fiscal_period.id)

        with pytest.raises(PeriodNotFoundError):
            period_service.get(fiscal_period.id)

    def test_delete_current_period_refused(self, period_service, fiscal_period, tenant_id):
        period_service.set_as_current(tenant_id, fiscal_period.id)

        with pytest.raises(PeriodDeletionError) as exc_info:
            period_service.delete(fiscal_period.id)
        assert exc_info.value.blocker == "period is the current period"

    def test_delete_closed_period_refused(self, period_service, fiscal_period, test_actor_id):
        period_service.close(fiscal_period.id, test_actor_id)

        with pytest.raises(PeriodDeletionError) as exc_info:
            period_service.delete(fiscal_period.id)
        assert exc_info.value.blocker == "period is closed"

    def test_delete_period_with_entries_refused(
        self, period_service, journal_service, fiscal_period, tenant_id, balanced_lines
    ):
        journal_service.create(
            tenant_id, fiscal_period.id, date(2025, 8, 1), "Cash sale", balanced_lines()
        )

        with pytest.raises(PeriodDeletionError) as exc_info:
            period_service.delete(fiscal_period.id)
        assert exc_info.value.blocker == "period has journal entries"


class TestDocumentNumbering:
    def test_sequential_invoice_numbers(self, period_service, fiscal_period):
        numbers = [period_service.generate_invoice_number(fiscal_period.id) for _ in range(3)]

        assert numbers == ["INV-8283-0001", "INV-8283-0002", "INV-8283-0003"]
        assert period_service.get(fiscal_period.id).last_invoice_num == 3

    def test_counters_are_independent_per_type(self, period_service, fiscal_period):
        period_service.generate_invoice_number(fiscal_period.id)
        period_service.generate_invoice_number(fiscal_period.id)

        assert period_service.generate_purchase_number(fiscal_period.id) == "PUR-8283-0001"
        assert period_service.generate_voucher_number(fiscal_period.id) == "JV-8283-0001"
        assert period_service.generate_invoice_number(fiscal_period.id) == "INV-8283-0003"

    def test_counters_are_independent_per_period(self, period_service, fiscal_period, tenant_id):
        earlier = period_service.create_from_name(tenant_id, "2081/82")
        period_service.generate_invoice_number(fiscal_period.id)

        assert period_service.generate_invoice_number(earlier.id) == "INV-8182-0001"

    def test_generate_by_document_type(self, period_service, fiscal_period):
        number = period_service.generate_document_number(fiscal_period.id, DocumentType.PURCHASE)
        assert number == "PUR-8283-0001"

    def test_closed_period_issues_no_number(self, period_service, fiscal_period, test_actor_id):
        for _ in range(3):
            period_service.generate_invoice_number(fiscal_period.id)
        period_service.close(fiscal_period.id, test_actor_id)

        with pytest.raises(ClosedPeriodError):
            period_service.generate_invoice_number(fiscal_period.id)
        assert period_service.get(fiscal_period.id).last_invoice_num == 3

        period_service.reopen(fiscal_period.id, test_actor_id)
        assert period_service.generate_invoice_number(fiscal_period.id) == "INV-8283-0004"

    def test_unknown_period(self, period_service):
        with pytest.raises(PeriodNotFoundError):
            period_service.generate_voucher_number(uuid4())

    def test_issued_number_is_logged(self, period_service, fiscal_period, captured_logs):
        period_service.generate_invoice_number(fiscal_period.id)

        issued = [r for r in captured_logs() if r["message"] == "document_number_issued"]
        assert issued[-1]["document_number"] == "INV-8283-0001"
        assert issued[-1]["document_type"] == "INV"


class TestQueries:
    def test_get_by_name(self, period_service, fiscal_period, tenant_id):
        assert period_service.get_by_name(tenant_id, "2082/83").id == fiscal_period.id
        assert period_service.get_by_name(tenant_id, "2081/82") is None

    def test_list_newest_first(self, period_service, tenant_id):
        period_service.create_from_name(tenant_id, "2081/82")
        period_service.create_from_name(tenant_id, "2083/84")
        period_service.create_from_name(tenant_id, "2082/83")

        names = [p.name for p in period_service.list_for_tenant(tenant_id)]
        assert names == ["2083/84", "2082/83", "2081/82"]

    def test_require_open(self, period_service, fiscal_period, test_actor_id):
        assert period_service.require_open(fiscal_period.id).id == fiscal_period.id

        period_service.close(fiscal_period.id, test_actor_id)
        with pytest.raises(ClosedPeriodError):
            period_service.require_open(fiscal_period.id)
