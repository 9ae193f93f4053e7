"""
Flask CLI commands for back-office tasks.

Commands:
- flask export-report: Print a report as CSV
- flask create-manager: Create a manager who can authorize refunds
"""

from datetime import date

import click
from flask import current_app
from pos_app.database import get_session
from pos_app.models import Business, Employee
from pos_app.services.report_data_service import generate_report, REPORT_NAMES
from pos_app.utils.csv_export import REPORT_EXPORTERS


def init_cli_commands(app):
    """Register CLI commands with Flask app."""

    @app.cli.command('export-report')
    @click.argument('name', type=click.Choice(REPORT_NAMES))
    @click.option('--business-id', type=int, required=True, help='Business to report on')
    @click.option('--start', type=click.DateTime(formats=['%Y-%m-%d']), required=True, help='First day (YYYY-MM-DD)')
    @click.option('--end', type=click.DateTime(formats=['%Y-%m-%d']), default=None, help='Last day, defaults to start')
    @click.option('--data-uri', is_flag=True, help='Prefix output with the data:text/csv URI marker')
    def export_report(name, business_id, start, end, data_uri):
        """Print the NAME report for a date range as CSV."""
        start_day: date = start.date()
        end_day: date = end.date() if end else start_day

        report = generate_report(get_session(), business_id, name, start_day, end_day,
                                 config=current_app.config)
        export = REPORT_EXPORTERS[name](report, start_day.isoformat(), end_day.isoformat())
        click.echo(export.to_data_uri() if data_uri else export.to_text(), nl=False)

    @app.cli.command('create-manager')
    @click.option('--business-id', type=int, required=True, help='Business the manager belongs to')
    @click.option('--name', prompt=True, help='Full name')
    @click.option('--pin', prompt=True, hide_input=True, confirmation_prompt=True, help='Refund authorization PIN')
    def create_manager(business_id, name, pin):
        """Create a manager able to authorize refunds."""
        if not pin.isdigit() or len(pin) < 4:
            click.echo(click.style('PIN must be at least 4 digits.', fg='red'))
            return

        db_session = get_session()
        if not db_session.query(Business).filter_by(id=business_id).first():
            click.echo(click.style(f'Business {business_id} not found.', fg='red'))
            return

        try:
            manager = Employee(business_id=business_id, full_name=name, role='manager', active=True)
            manager.set_pin(pin)
            db_session.add(manager)
            db_session.commit()
            click.echo(click.style(f'Manager created (ID: {manager.id})', fg='green', bold=True))
        except Exception as e:
            db_session.rollback()
            click.echo(click.style(f'Error creating manager: {e}', fg='red'))
