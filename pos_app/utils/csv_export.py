"""
CSV export of report dicts.

Layout: title line, ``Period``/``Employee Filter``/``Generated`` metadata,
a blank line, then sections separated by blank lines. Money cells carry two
decimals and no currency symbol. ``to_data_uri()`` prefixes the
``data:text/csv;charset=utf-8,`` marker used for browser downloads.
"""
import csv
import io
from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from pos_app.utils.formatters import money_plain, format_hour, datetime_display

DATA_URI_PREFIX = 'data:text/csv;charset=utf-8,'
ALL_EMPLOYEES = 'All Employees'


class CsvReport:
    """Accumulates the lines of one exported report."""

    def __init__(self, title: str, start, end, employee_filter: Optional[str] = None,
                 generated_at: Optional[datetime] = None):
        self._buffer = io.StringIO()
        self._writer = csv.writer(self._buffer, lineterminator='\n')
        self._writer.writerow([title])
        self._writer.writerow(['Period', f"{start} to {end}"])
        self._writer.writerow(['Employee Filter', employee_filter or ALL_EMPLOYEES])
        generated = generated_at or datetime.now()
        self._writer.writerow(['Generated', generated.strftime('%Y-%m-%d %H:%M:%S')])
        self._writer.writerow([])

    def section(self, title: Optional[str], header: Optional[Sequence] = None,
                rows: Iterable[Sequence] = ()) -> 'CsvReport':
        if title:
            self._writer.writerow([title])
        if header:
            self._writer.writerow(header)
        for row in rows:
            self._writer.writerow(row)
        self._writer.writerow([])
        return self

    def to_text(self) -> str:
        return self._buffer.getvalue()

    def to_data_uri(self) -> str:
        return DATA_URI_PREFIX + self.to_text()


def hourly_csv(report: dict, start, end, employee_filter=None, generated_at=None) -> CsvReport:
    out = CsvReport('Hourly Sales Breakdown Report', start, end, employee_filter, generated_at)
    out.section(
        None,
        ['Hour', 'Sales', 'Refunds', 'Net Sales', 'Transactions', 'Average Transaction'],
        [
            [h['label'], money_plain(h['sales']), money_plain(h['refunds']), money_plain(h['net_sales']),
             h['transaction_count'], money_plain(h['average_transaction'])]
            for h in report['hours']
        ],
    )
    summary = report['summary']
    out.section('Summary', None, [
        ['Total Sales', money_plain(summary['total_sales'])],
        ['Total Refunds', money_plain(summary['total_refunds'])],
        ['Net Sales', money_plain(summary['net_sales'])],
        ['Total Transactions', summary['total_transactions']],
        ['Overall Average', money_plain(summary['average_transaction'])],
        ['Peak Hours', ', '.join(format_hour(h) for h in report['peak_hours'])],
    ])
    return out


def tax_csv(report: dict, start, end, employee_filter=None, generated_at=None) -> CsvReport:
    out = CsvReport('Tax Compliance Report', start, end, employee_filter, generated_at)
    out.section('Tax Summary', None, [
        ['Total Taxable Amount', money_plain(report['total_taxable_amount'])],
        ['Total Tax Collected', money_plain(report['total_tax_collected'])],
        ['Total Tax Exempt', money_plain(report['total_exempt_amount'])],
        ['Tax Refunded (Estimated)', money_plain(report['refunded_tax'])],
        ['Net Tax Owed', money_plain(report['net_tax_owed'])],
    ])
    if report['aggregated_taxes']:
        out.section('Aggregated Taxes by Type', ['Tax Type', 'Amount'],
                    [[name, money_plain(amount)] for name, amount in report['aggregated_taxes'].items()])
    if report['aggregated_rebates']:
        out.section('Aggregated Rebates by Type', ['Rebate Type', 'Amount'],
                    [[name, money_plain(amount)] for name, amount in report['aggregated_rebates'].items()])
    if report['tax_by_rate']:
        out.section('Tax by Rate', ['Rate', 'Taxable Amount', 'Tax Collected', 'Items'], [
            [g['rate'], money_plain(g['taxable_amount']), money_plain(g['tax_collected']), g['item_count']]
            for g in report['tax_by_rate']
        ])
    if report['tax_by_category']:
        out.section('Tax by Category', ['Category', 'Taxable Amount', 'Tax Collected', 'Items'], [
            [g['category'], money_plain(g['taxable_amount']), money_plain(g['tax_collected']), g['item_count']]
            for g in report['tax_by_category']
        ])
    out.section('Daily Tax Breakdown', ['Date', 'Taxable Amount', 'Tax Collected', 'Transactions'], [
        [d['date'], money_plain(d['taxable_amount']), money_plain(d['tax_collected']), d['transaction_count']]
        for d in report['daily_breakdown']
    ])
    return out


def drawer_csv(report: dict, start, end, employee_filter=None, generated_at=None) -> CsvReport:
    out = CsvReport('Cash Drawer Reconciliation Report', start, end, employee_filter, generated_at)
    out.section(
        None,
        ['Opened', 'Closed', 'Opened By', 'Closed By', 'Starting Cash', 'Expected Cash',
         'Actual Cash', 'Variance', 'Status', 'Terminal', 'Notes'],
        [
            [datetime_display(d['opened_at']), datetime_display(d['closed_at']),
             d['opened_by'] or 'Unknown', d['closed_by'] or '',
             money_plain(d['starting_cash']), money_plain(d['expected_cash']),
             money_plain(d['actual_cash']), money_plain(d['variance']),
             d['status'], d['terminal_id'] or 'N/A', d['notes']]
            for d in report['drawers']
        ],
    )
    summary = report['summary']
    out.section('Summary', None, [
        ['Total Drawers', summary['total_drawers']],
        ['Total Starting Cash', money_plain(summary['total_starting_cash'])],
        ['Total Expected Cash', money_plain(summary['total_expected_cash'])],
        ['Total Actual Cash', money_plain(summary['total_actual_cash'])],
        ['Total Variance', money_plain(summary['total_variance'])],
        ['Variances Over Threshold', summary['flagged_count']],
    ])
    return out


def period_csv(report: dict, start, end, employee_filter=None, generated_at=None) -> CsvReport:
    out = CsvReport('End-of-Period Sales Report', start, end, employee_filter, generated_at)
    sales = report['sales_summary']
    out.section('Sales Summary', None, [
        ['Total Sales', money_plain(sales['total_sales'])],
        ['Total Transactions', sales['total_transactions']],
        ['Average Transaction', money_plain(sales['average_transaction'])],
        ['Total Tax', money_plain(sales['total_tax'])],
        ['Total Refunds', money_plain(sales['total_refunds'])],
        ['Net Sales', money_plain(sales['net_sales'])],
    ])
    out.section('Payment Methods', ['Method', 'Amount'],
                [[method, money_plain(amount)] for method, amount in report['payment_summary'].items()])
    out.section('Category Performance', ['Category', 'Revenue', 'Quantity', 'Items'], [
        [c['name'], money_plain(c['revenue']), c['quantity'], c['items']]
        for c in report['category_summary']
    ])
    out.section('Employee Performance', ['Employee', 'Sales', 'Transactions', 'Average Transaction'], [
        [e['name'], money_plain(e['sales']), e['transactions'], money_plain(e['average_transaction'])]
        for e in report['employee_summary']
    ])
    drawers = report['drawer_summary']
    if drawers['drawer_count'] > 0:
        out.section('Cash Drawer Summary', None, [
            ['Opening Cash', money_plain(drawers['opening_cash'])],
            ['Cash Sales', money_plain(drawers['cash_sales'])],
            ['Expected Cash', money_plain(drawers['expected_cash'])],
            ['Actual Cash', money_plain(drawers['actual_cash'])],
            ['Variance', money_plain(drawers['variance'])],
        ])
    return out


REPORT_EXPORTERS = {
    'hourly': hourly_csv,
    'tax': tax_csv,
    'drawer': drawer_csv,
    'period': period_csv,
}


def export_names() -> List[str]:
    return sorted(REPORT_EXPORTERS)
