"""
Unit tests for the hourly, period, tax and drawer report aggregators.
"""

from datetime import datetime
from decimal import Decimal

from pos_app.services.drawer_report_service import reconcile_drawer, generate_drawer_report
from pos_app.services.hourly_report_service import build_hourly_breakdown, generate_hourly_report
from pos_app.services.period_report_service import (
    generate_period_report, summarize_categories, summarize_payments, summarize_employees,
)
from pos_app.services.tax_report_service import generate_tax_report, rate_key, effective_tax_rate


class TestHourlyReport:
    """Tests for hourly buckets and peak detection."""

    def test_buckets_and_peaks(self):
        sales = [
            {'id': 1, 'total': '100.00', 'created_at': datetime(2024, 3, 5, 14, 5)},
            {'id': 2, 'total': '85.00', 'created_at': datetime(2024, 3, 5, 15, 40)},
            {'id': 3, 'total': '50.00', 'created_at': datetime(2024, 3, 5, 9, 15)},
        ]
        refunds = [{'total_refund_amount': '10.00', 'created_at': datetime(2024, 3, 5, 9, 30)}]

        report = generate_hourly_report(sales, refunds, tz_name='America/Toronto')

        assert len(report['hours']) == 24
        assert report['hours'][9]['net_sales'] == Decimal('40.00')
        assert report['hours'][9]['refund_count'] == 1
        assert report['peak_hours'] == [14, 15]
        assert report['peak_hour_labels'] == ['2:00 PM', '3:00 PM']
        assert report['summary']['total_transactions'] == 3
        assert report['summary']['net_sales'] == Decimal('225.00')

    def test_aware_timestamps_use_business_timezone(self):
        sales = [{'id': 1, 'total': '10.00', 'created_at': '2024-03-05T19:30:00+00:00'}]

        hours = build_hourly_breakdown(sales, [], tz_name='America/Toronto')

        assert hours[14]['transaction_count'] == 1

    def test_no_sales_has_no_peaks(self):
        report = generate_hourly_report([], [])

        assert report['peak_hours'] == []
        assert report['summary']['average_transaction'] == Decimal('0')
        assert report['hours'][0]['label'] == '12:00 AM'


class TestPeriodReport:
    """Tests for end-of-period summaries."""

    def test_category_percentages_zero_when_no_revenue(self):
        sales = [{'items': [{'category_name': 'Free', 'total_price': '0', 'quantity': 1}]}]

        categories = summarize_categories(sales)

        assert categories[0]['percentage_of_total'] == Decimal('0')

    def test_payment_methods_merged_case_insensitively(self):
        payments = [
            {'payment_method': 'Cash', 'amount': '5.00'},
            {'payment_method': 'cash', 'amount': '2.50'},
            {'payment_method': 'card', 'amount': '10.00'},
        ]

        summary = summarize_payments(payments)

        assert list(summary) == ['card', 'cash']
        assert summary['cash'] == Decimal('7.50')

    def test_employee_summary(self):
        sales = [
            {'user_id': 1, 'total': '30.00'},
            {'user_id': 1, 'total': '10.00'},
            {'user_id': 2, 'total': '60.00'},
        ]

        employees = summarize_employees(sales, {1: 'Casey', 2: 'Morgan'})

        assert [e['name'] for e in employees] == ['Morgan', 'Casey']
        assert employees[1]['average_transaction'] == Decimal('20.00')
        assert employees[0]['percentage_of_total'] == Decimal('60')

    def test_full_report(self):
        sales = [{
            'user_id': 1, 'total': '45.20', 'tax': '5.20', 'discount': '2.00', 'loyalty_discount': '0.50',
            'items': [
                {'name': 'Widget', 'category_name': 'Hardware', 'total_price': '30.00', 'quantity': 2},
                {'name': 'Tea', 'category_name': None, 'total_price': '10.00', 'quantity': 1},
            ],
        }]
        payments = [{'payment_method': 'cash', 'amount': '45.20'}]
        refunds = [{'total_refund_amount': '5.20'}]
        drawers = [{'starting_cash': '100.00', 'expected_cash': '145.20', 'actual_cash': '145.00',
                    'variance': '-0.20'}]

        report = generate_period_report(sales, payments, refunds, drawers, {1: 'Casey'})

        assert report['sales_summary']['net_sales'] == Decimal('40.00')
        assert [c['name'] for c in report['category_summary']] == ['Hardware', 'Uncategorized']
        assert report['category_summary'][0]['percentage_of_total'] == Decimal('75')
        assert report['top_items'][0]['name'] == 'Widget'
        assert report['drawer_summary']['cash_sales'] == Decimal('45.20')
        assert report['drawer_summary']['variance'] == Decimal('-0.20')
        assert report['discount_summary']['manual_discounts'] == Decimal('1.50')

    def test_empty_period(self):
        report = generate_period_report([], [], [], [])

        assert report['sales_summary']['average_transaction'] == Decimal('0')
        assert report['category_summary'] == []
        assert report['drawer_summary']['drawer_count'] == 0


class TestTaxReport:
    """Tests for tax compliance aggregation."""

    def _sales(self):
        return [
            {
                'tax': '13.00', 'subtotal': '100.00', 'created_at': datetime(2024, 3, 5, 10, 0),
                'aggregated_taxes': {'HST': '13.00'}, 'aggregated_rebates': {},
                'items': [{'total_price': '100.00', 'tax_amount': '13.00', 'tax_rate': 0.13,
                           'quantity': 1, 'category_name': 'Food'}],
            },
            {
                'tax': '0', 'subtotal': '30.00', 'created_at': datetime(2024, 3, 6, 10, 0),
                'items': [{'total_price': '30.00', 'tax_exempt': True, 'quantity': 2}],
            },
        ]

    def test_totals_and_estimated_refund_tax(self):
        report = generate_tax_report(self._sales(), [{'total_refund_amount': '12.00'}])

        assert report['total_tax_collected'] == Decimal('13.00')
        assert report['total_taxable_amount'] == Decimal('100.00')
        assert report['total_exempt_amount'] == Decimal('30.00')
        assert report['refunded_tax'] == Decimal('1.20')
        assert report['refunded_tax_is_estimated'] is True
        assert report['net_tax_owed'] == Decimal('11.80')
        assert report['aggregated_taxes'] == {'HST': Decimal('13.00')}

    def test_groupings(self):
        report = generate_tax_report(self._sales(), [])

        assert report['tax_by_rate'][0]['rate'] == '13.00%'
        assert report['tax_by_category'][0]['category'] == 'Food'
        assert [d['date'] for d in report['daily_breakdown']] == ['2024-03-05', '2024-03-06']

    def test_rate_helpers(self):
        assert rate_key('0.05') == '5.00%'
        assert effective_tax_rate([]) == Decimal('0')


class TestDrawerReport:
    """Tests for drawer reconciliation."""

    def _drawer(self, **overrides):
        drawer = {
            'id': 1, 'starting_cash': '500.00', 'expected_cash': None, 'actual_cash': '625.00',
            'opened_at': datetime(2024, 3, 5, 9, 0), 'closed_at': datetime(2024, 3, 5, 17, 0),
            'status': 'closed', 'opened_by': 'Casey', 'terminal_id': 'T1',
        }
        drawer.update(overrides)
        return drawer

    def _activity(self):
        payments = [
            {'payment_method': 'cash', 'amount': '100.00', 'created_at': datetime(2024, 3, 5, 10, 0)},
            {'payment_method': 'Cash', 'amount': '50.00', 'created_at': datetime(2024, 3, 5, 12, 0)},
            {'payment_method': 'card', 'amount': '80.00', 'created_at': datetime(2024, 3, 5, 12, 0)},
            {'payment_method': 'cash', 'amount': '999.00', 'created_at': datetime(2024, 3, 5, 18, 0)},
        ]
        refunds = [{'refund_method': 'cash', 'total_refund_amount': '20.00',
                    'created_at': datetime(2024, 3, 5, 15, 0)}]
        return payments, refunds

    def test_variance_at_threshold_not_flagged(self):
        payments, refunds = self._activity()

        row = reconcile_drawer(self._drawer(), payments, refunds, threshold='5.00')

        assert row['total_cash_sales'] == Decimal('150.00')
        assert row['total_cash_refunds'] == Decimal('20.00')
        assert row['expected_cash'] == Decimal('630.00')
        assert row['variance'] == Decimal('-5.00')
        assert row['flagged'] is False

    def test_variance_over_threshold_flagged(self):
        payments, refunds = self._activity()

        row = reconcile_drawer(self._drawer(), payments, refunds, threshold='4.99')

        assert row['flagged'] is True

    def test_recorded_expected_cash_takes_precedence(self):
        payments, refunds = self._activity()

        row = reconcile_drawer(self._drawer(expected_cash='625.00'), payments, refunds)

        assert row['variance'] == Decimal('0')
        assert row['variance_from_calculated'] == Decimal('-5.00')

    def test_open_drawer_uses_now(self):
        payments, refunds = self._activity()

        row = reconcile_drawer(self._drawer(closed_at=None, status='open'), payments, refunds,
                               now=datetime(2024, 3, 5, 19, 0))

        assert row['total_cash_sales'] == Decimal('1149.00')

    def test_summary(self):
        payments, refunds = self._activity()

        report = generate_drawer_report([self._drawer()], payments, refunds, threshold='4.99')

        assert report['summary']['total_drawers'] == 1
        assert report['summary']['flagged_count'] == 1
        assert report['summary']['total_variance'] == Decimal('-5.00')


class TestInputOrder:
    """Reports are identical whatever order their input rows arrive in."""

    SALES = [
        {'id': 1, 'user_id': 1, 'total': '10.00', 'tax': '1.30', 'subtotal': '10.00',
         'created_at': datetime(2024, 3, 5, 10, 0),
         'aggregated_taxes': {'HST': '1.30'},
         'items': [{'name': 'Tea', 'total_price': '10.00', 'quantity': 1, 'tax_rate': '0.13',
                    'tax_amount': '1.30', 'category_name': 'Drinks'}]},
        {'id': 2, 'user_id': 2, 'total': '10.00', 'tax': '1.30', 'subtotal': '10.00',
         'created_at': datetime(2024, 3, 5, 10, 0),
         'aggregated_taxes': {'HST': '1.30'},
         'items': [{'name': 'Coffee', 'total_price': '10.00', 'quantity': 1, 'tax_rate': '0.13',
                    'tax_amount': '1.30', 'category_name': 'Food'}]},
        {'id': 3, 'user_id': 3, 'total': '4.50', 'tax': '0.00', 'subtotal': '4.50',
         'created_at': datetime(2024, 3, 6, 16, 20),
         'aggregated_rebates': {'Book Rebate': '0.25'},
         'items': [{'name': 'Scone', 'total_price': '4.50', 'quantity': 3, 'tax_exempt': True}]},
    ]
    PAYMENTS = [
        {'sale_id': 1, 'payment_method': 'cash', 'amount': '10.00', 'created_at': datetime(2024, 3, 5, 10, 0)},
        {'sale_id': 2, 'payment_method': 'Card', 'amount': '10.00', 'created_at': datetime(2024, 3, 5, 10, 0)},
        {'sale_id': 3, 'payment_method': 'CASH', 'amount': '4.50', 'created_at': datetime(2024, 3, 6, 16, 20)},
    ]
    REFUNDS = [
        {'total_refund_amount': '2.00', 'refund_method': 'cash', 'created_at': datetime(2024, 3, 5, 11, 0)},
        {'total_refund_amount': '3.00', 'refund_method': 'card', 'created_at': datetime(2024, 3, 5, 12, 0)},
    ]
    DRAWERS = [
        {'id': 1, 'starting_cash': '100', 'actual_cash': '108', 'opened_at': datetime(2024, 3, 5, 9, 0),
         'closed_at': datetime(2024, 3, 5, 17, 0), 'status': 'closed', 'opened_by': 'Casey'},
        {'id': 2, 'starting_cash': '50', 'actual_cash': '50', 'opened_at': datetime(2024, 3, 5, 9, 0),
         'closed_at': datetime(2024, 3, 5, 17, 0), 'status': 'closed', 'opened_by': 'Casey'},
    ]

    def test_hourly(self):
        forward = generate_hourly_report(self.SALES, self.REFUNDS)
        backward = generate_hourly_report(self.SALES[::-1], self.REFUNDS[::-1])

        assert forward == backward

    def test_period_with_tied_unnamed_employees(self):
        """Employees 1 and 2 tie on sales and share the 'Unknown' name."""
        forward = generate_period_report(self.SALES, self.PAYMENTS, self.REFUNDS, self.DRAWERS)
        backward = generate_period_report(self.SALES[::-1], self.PAYMENTS[::-1], self.REFUNDS[::-1],
                                          self.DRAWERS[::-1])

        assert forward == backward
        assert [e['id'] for e in forward['employee_summary']] == [1, 2, 3]

    def test_tax(self):
        forward = generate_tax_report(self.SALES, self.REFUNDS)
        backward = generate_tax_report(self.SALES[::-1], self.REFUNDS[::-1])

        assert forward == backward

    def test_drawers_opened_at_same_time(self):
        forward = generate_drawer_report(self.DRAWERS, self.PAYMENTS, self.REFUNDS)
        backward = generate_drawer_report(self.DRAWERS[::-1], self.PAYMENTS[::-1], self.REFUNDS[::-1])

        assert forward == backward
        assert [d['id'] for d in forward['drawers']] == [1, 2]
