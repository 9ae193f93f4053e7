"""Reports blueprint - hourly, period, tax and drawer reports as JSON or CSV."""
from datetime import date
from flask import Blueprint, request, jsonify, current_app, Response
from pos_app.database import get_session
from pos_app.exceptions import BusinessLogicError
from pos_app.middleware import current_context, require_business
from pos_app.services.report_data_service import generate_report, employee_names
from pos_app.utils.csv_export import REPORT_EXPORTERS

reports_bp = Blueprint('reports', __name__, url_prefix='/reports')


def parse_date_arg(value, default: date) -> date:
    if not value:
        return default
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise BusinessLogicError(f"Invalid date '{value}', expected YYYY-MM-DD")


def parse_employee_arg(value):
    if not value or value == 'all':
        return None
    try:
        return int(value)
    except ValueError:
        raise BusinessLogicError(f"Invalid employee id '{value}'")


@reports_bp.route('/<name>')
@require_business
def show_report(name: str):
    """Run a report for ?start=&end= (inclusive days), optional ?employee= and ?format=csv."""
    today = date.today()
    start = parse_date_arg(request.args.get('start'), today)
    end = parse_date_arg(request.args.get('end'), start)
    employee_id = parse_employee_arg(request.args.get('employee'))

    db_session = get_session()
    context = current_context()
    report = generate_report(db_session, context.business_id, name, start, end,
                             employee_id=employee_id, config=current_app.config)

    if request.args.get('format') == 'csv':
        employee_filter = None
        if employee_id:
            employee_filter = employee_names(db_session, context.business_id).get(employee_id, 'Unknown Employee')
        export = REPORT_EXPORTERS[name](report, start.isoformat(), end.isoformat(), employee_filter)
        filename = f"{name}-report-{start.isoformat()}-{end.isoformat()}.csv"
        return Response(
            export.to_text(),
            mimetype='text/csv',
            headers={'Content-Disposition': f'attachment; filename={filename}'},
        )

    return jsonify({'status': 'ok', 'report': name, 'start': start.isoformat(),
                    'end': end.isoformat(), 'data': report})
