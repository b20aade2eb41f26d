"""
Payment processing for completed appointments
- Receipt numbering
- Recording a payment and issuing its receipt
- Daily / monthly payment summaries
- CSV financial reports (daily, weekly, monthly, annual, custom)
"""

import calendar
import csv
import io
from collections import defaultdict
from datetime import datetime, time, timedelta
from decimal import Decimal, InvalidOperation

import config
from models import db, PaymentReceipt

ZERO = Decimal('0.00')
MINIMUM_AMOUNT = Decimal('0.01')
# largest value a Numeric(10, 2) column holds
MAXIMUM_AMOUNT = Decimal('99999999.99')

REPORT_TYPES = ('daily', 'weekly', 'monthly', 'annual', 'custom')


class PaymentError(ValueError):
    """Payment request rejected before anything was written."""


def generate_receipt_number(year=None):
    """Next receipt number for the year, e.g. RCPT-2025-00042."""
    year = year or datetime.now().year
    prefix = f"{config.RECEIPT_PREFIX}-{year}-"
    sequence = db.cast(db.func.substr(PaymentReceipt.receipt_number, len(prefix) + 1), db.Integer)
    last_receipt = (
        PaymentReceipt.query
        .filter(PaymentReceipt.receipt_number.like(prefix + '%'))
        .order_by(sequence.desc())
        .first()
    )
    next_number = int(last_receipt.receipt_number[len(prefix):]) + 1 if last_receipt else 1
    return f"{prefix}{next_number:05d}"


def _parse_amount(amount):
    try:
        value = Decimal(str(amount)).quantize(MINIMUM_AMOUNT)
    except (InvalidOperation, ValueError):
        raise PaymentError(f"Invalid amount: {amount!r}")
    if not value.is_finite():
        raise PaymentError(f"Invalid amount: {amount!r}")
    if value < MINIMUM_AMOUNT:
        raise PaymentError(f"Amount must be at least {MINIMUM_AMOUNT}")
    if value > MAXIMUM_AMOUNT:
        raise PaymentError(f"Amount must be at most {MAXIMUM_AMOUNT}")
    return value


def _optional_text(value, field):
    if value is not None and not isinstance(value, str):
        raise PaymentError(f"{field} must be a string")
    return value


def process_payment(appointment, amount, payment_method, service_description,
                    processed_by='Staff', payment_notes=None, now=None):
    """Mark a completed appointment as paid and issue a receipt.

    The appointment update and the receipt are committed together; on any
    database error the session is rolled back and the error re-raised.
    """
    if appointment.status != 'completed' or appointment.is_paid():
        raise PaymentError('Payment can only be processed for completed unpaid appointments.')

    value = _parse_amount(amount)

    if payment_method not in config.PAYMENT_METHODS:
        raise PaymentError(f"Unsupported payment method: {payment_method}")

    if not isinstance(service_description, str) or not service_description.strip():
        raise PaymentError('service_description is required')
    service_description = service_description.strip()
    if len(service_description) > config.SERVICE_DESCRIPTION_MAX_LENGTH:
        raise PaymentError(
            f"service_description must be at most {config.SERVICE_DESCRIPTION_MAX_LENGTH} characters"
        )
    payment_notes = _optional_text(payment_notes, 'payment_notes')
    processed_by = _optional_text(processed_by, 'processed_by')

    now = now or datetime.now()
    try:
        receipt_number = generate_receipt_number(now.year)

        appointment.payment_status = 'paid'
        appointment.amount = value
        appointment.payment_method = payment_method
        appointment.receipt_number = receipt_number
        appointment.payment_date = now
        appointment.payment_notes = payment_notes

        doctor = appointment.doctor
        receipt = PaymentReceipt(
            receipt_number=receipt_number,
            appointment_id=appointment.id,
            clinic_id=appointment.clinic_id,
            doctor_id=appointment.doctor_id,
            patient_name=appointment.owner_name,
            doctor_name=doctor.full_name if doctor else None,
            service_description=service_description,
            amount=value,
            payment_method=payment_method,
            payment_date=now,
            processed_by=processed_by or 'Staff',
            notes=payment_notes,
        )
        db.session.add(receipt)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return receipt


def _receipts_between(clinic_id, start, end, newest_first=True):
    order = PaymentReceipt.payment_date.desc() if newest_first else PaymentReceipt.payment_date
    return (
        PaymentReceipt.query
        .filter(
            PaymentReceipt.clinic_id == clinic_id,
            PaymentReceipt.payment_date >= start,
            PaymentReceipt.payment_date < end,
        )
        .order_by(order)
        .all()
    )


def _within(receipts, start, end):
    return [r for r in receipts if start <= r.payment_date < end]


def _total(receipts):
    return sum((r.amount for r in receipts), ZERO)


def _average(total, count):
    return total / count if count else ZERO


def _by_method(receipts):
    groups = defaultdict(list)
    for receipt in receipts:
        groups[receipt.payment_method].append(receipt)
    return {method: {'count': len(items), 'total': _total(items)} for method, items in groups.items()}


def _month_bounds(year, month):
    start = datetime(year, month, 1)
    return start, start + timedelta(days=calendar.monthrange(year, month)[1])


def daily_summary(clinic_id, day):
    day_start = datetime.combine(day, time.min)
    payments = _receipts_between(clinic_id, day_start, day_start + timedelta(days=1))

    method_breakdown = {
        method: {'count': data['count'], 'total': f"{data['total']:.2f}"}
        for method, data in _by_method(payments).items()
    }

    monthly = _receipts_between(clinic_id, *_month_bounds(day.year, day.month))

    # last 7 days, oldest first
    weekly = []
    for offset in range(6, -1, -1):
        start = day_start - timedelta(days=offset)
        day_receipts = _receipts_between(clinic_id, start, start + timedelta(days=1))
        weekly.append({
            'date': start.strftime('%b %d'),
            'total': f"{_total(day_receipts):.2f}",
        })

    return {
        'date': day.isoformat(),
        'payments': [r.to_dict() for r in payments],
        'daily_total': f"{_total(payments):.2f}",
        'payment_methods': method_breakdown,
        'monthly_total': f"{_total(monthly):.2f}",
        'monthly_count': len(monthly),
        'weekly': weekly,
    }


# ---------------- CSV REPORTS ----------------

def _peso(amount):
    return f"PHP {amount:,.2f}"


def _method_name(method):
    return method.replace('_', ' ').capitalize()


def _method_rows(receipts):
    rows = [['PAYMENT METHODS'], ['Method', 'Transactions', 'Total Amount']]
    for method, data in _by_method(receipts).items():
        rows.append([_method_name(method), data['count'], _peso(data['total'])])
    return rows


def _transaction_rows(receipts, with_date=True):
    header = ['Receipt Number', 'Time', 'Patient Name', 'Service', 'Doctor', 'Payment Method', 'Amount']
    if with_date:
        header.insert(1, 'Date')
    rows = [['DETAILED TRANSACTIONS'], header]
    for r in receipts:
        row = [
            r.receipt_number,
            r.payment_date.strftime('%I:%M %p'),
            r.patient_name,
            r.service_description,
            r.doctor_name or 'N/A',
            _method_name(r.payment_method),
            _peso(r.amount),
        ]
        if with_date:
            row.insert(1, r.payment_date.strftime('%b %d, %Y'))
        rows.append(row)
    return rows


def _summary_rows(total, count, **averages):
    rows = [['SUMMARY'], ['Total Revenue', _peso(total)], ['Total Transactions', count]]
    for label, value in averages.items():
        rows.append([label, value if isinstance(value, int) else _peso(value)])
    rows.append(['Average per Transaction', _peso(_average(total, count))])
    return rows


def _daily_report(clinic_id, day):
    start = datetime.combine(day, time.min)
    payments = _receipts_between(clinic_id, start, start + timedelta(days=1), newest_first=False)
    total = _total(payments)

    rows = [['Date: ' + day.strftime('%B %d, %Y (%A)')], []]
    rows += _summary_rows(total, len(payments))

    hourly = []
    for hour in range(24):
        hour_start = start + timedelta(hours=hour)
        in_hour = _within(payments, hour_start, hour_start + timedelta(hours=1))
        if in_hour:
            hourly.append([hour_start.strftime('%I:00 %p'), _peso(_total(in_hour)), len(in_hour)])
    if hourly:
        rows += [[], ['HOURLY BREAKDOWN'], ['Hour', 'Revenue', 'Transactions']] + hourly

    rows += [[]] + _method_rows(payments)

    services = defaultdict(list)
    for r in payments:
        services[r.service_description].append(r)
    if services:
        rows += [[], ['SERVICE BREAKDOWN'], ['Service', 'Transactions', 'Total Amount']]
        ranked = sorted(services.items(), key=lambda item: _total(item[1]), reverse=True)
        rows += [[name, len(items), _peso(_total(items))] for name, items in ranked]

    rows += [[]] + _transaction_rows(payments, with_date=False)
    return 'DAILY FINANCIAL REPORT', rows, f"daily_report_{day.isoformat()}.csv"


def _weekly_report(clinic_id, start_day, end_day):
    start = datetime.combine(start_day, time.min)
    payments = _receipts_between(clinic_id, start, datetime.combine(end_day, time.min) + timedelta(days=1),
                                 newest_first=False)
    total = _total(payments)

    rows = [[f"Period: {start_day:%b %d, %Y} to {end_day:%b %d, %Y}"], []]
    rows += _summary_rows(total, len(payments), **{'Average per Day': total / 7})

    rows += [[], ['DAILY BREAKDOWN'], ['Date', 'Day', 'Revenue', 'Transactions']]
    for offset in range(7):
        day_start = start + timedelta(days=offset)
        in_day = _within(payments, day_start, day_start + timedelta(days=1))
        rows.append([day_start.strftime('%b %d, %Y'), day_start.strftime('%A'), _peso(_total(in_day)), len(in_day)])

    rows += [[]] + _method_rows(payments)
    rows += [[]] + _transaction_rows(payments)
    filename = f"weekly_report_{start_day.isoformat()}_to_{end_day.isoformat()}.csv"
    return 'WEEKLY FINANCIAL REPORT', rows, filename


def _monthly_report(clinic_id, year, month):
    month_start, month_end = _month_bounds(year, month)
    payments = _receipts_between(clinic_id, month_start, month_end, newest_first=False)
    total = _total(payments)
    days_in_month = (month_end - month_start).days

    rows = [['Month: ' + month_start.strftime('%B %Y')], []]
    rows += _summary_rows(total, len(payments), **{
        'Days in Month': days_in_month,
        'Average per Day': total / days_in_month,
    })

    # weeks start on Monday and are clipped to the month
    rows += [[], ['WEEKLY BREAKDOWN'], ['Week', 'Period', 'Revenue', 'Transactions']]
    week_start = month_start - timedelta(days=month_start.weekday())
    week = 1
    while week_start < month_end:
        week_end = min(week_start + timedelta(days=7), month_end)
        in_week = _within(payments, week_start, week_end)
        period_start = max(week_start, month_start)
        period = f"{period_start:%b %d} - {week_end - timedelta(days=1):%b %d}"
        rows.append([f"Week {week}", period, _peso(_total(in_week)), len(in_week)])
        week_start += timedelta(days=7)
        week += 1

    rows += [[]] + _method_rows(payments)
    return 'MONTHLY FINANCIAL REPORT', rows, f"monthly_report_{year}-{month:02d}.csv"


def _annual_report(clinic_id, year):
    payments = _receipts_between(clinic_id, datetime(year, 1, 1), datetime(year + 1, 1, 1), newest_first=False)
    total = _total(payments)

    rows = [[f"Year: {year}"], []]
    rows += _summary_rows(total, len(payments), **{'Average per Month': total / 12})

    rows += [[], ['QUARTERLY BREAKDOWN'], ['Quarter', 'Period', 'Revenue', 'Transactions']]
    for quarter in range(4):
        first_month = quarter * 3 + 1
        q_start = _month_bounds(year, first_month)[0]
        q_end = _month_bounds(year, first_month + 2)[1]
        in_quarter = _within(payments, q_start, q_end)
        period = f"{q_start:%b} - {datetime(year, first_month + 2, 1):%b}"
        rows.append([f"Q{quarter + 1}", period, _peso(_total(in_quarter)), len(in_quarter)])

    rows += [[], ['MONTHLY BREAKDOWN'], ['Month', 'Revenue', 'Transactions', 'Avg per Day']]
    for month in range(1, 13):
        m_start, m_end = _month_bounds(year, month)
        in_month = _within(payments, m_start, m_end)
        month_total = _total(in_month)
        rows.append([
            m_start.strftime('%B'),
            _peso(month_total),
            len(in_month),
            _peso(month_total / (m_end - m_start).days),
        ])

    return 'ANNUAL FINANCIAL REPORT', rows, f"annual_report_{year}.csv"


def _custom_report(clinic_id, start_day, end_day):
    payments = _receipts_between(
        clinic_id,
        datetime.combine(start_day, time.min),
        datetime.combine(end_day, time.min) + timedelta(days=1),
        newest_first=False,
    )
    total = _total(payments)
    days = (end_day - start_day).days + 1

    rows = [[f"Period: {start_day:%b %d, %Y} to {end_day:%b %d, %Y}"], [f"Duration: {days} days"], []]
    rows += _summary_rows(total, len(payments), **{'Average per Day': total / days})
    rows += [[]] + _transaction_rows(payments)
    filename = f"custom_report_{start_day.isoformat()}_to_{end_day.isoformat()}.csv"
    return 'CUSTOM PERIOD FINANCIAL REPORT', rows, filename


def payment_report(clinic, kind='weekly', day=None, start=None, end=None,
                   year=None, month=None, now=None):
    """Build a CSV financial report for a clinic.

    Returns ``(filename, csv_text)``. Raises PaymentError for an unknown
    report type or an invalid period.
    """
    now = now or datetime.now()
    today = now.date()

    try:
        if kind == 'daily':
            title, rows, filename = _daily_report(clinic.id, day or today)
        elif kind == 'weekly':
            end = end or today
            start = start or end - timedelta(days=6)
            if start > end:
                raise PaymentError('start must not be after end')
            title, rows, filename = _weekly_report(clinic.id, start, end)
        elif kind in ('monthly', 'annual'):
            year = year or today.year
            if not 1 <= year <= 9998:
                raise PaymentError('year must be between 1 and 9998')
            if kind == 'annual':
                title, rows, filename = _annual_report(clinic.id, year)
            else:
                month = month or today.month
                if not 1 <= month <= 12:
                    raise PaymentError('month must be between 1 and 12')
                title, rows, filename = _monthly_report(clinic.id, year, month)
        elif kind == 'custom':
            if start is None or end is None:
                raise PaymentError('custom reports need start and end dates')
            if start > end:
                raise PaymentError('start must not be after end')
            title, rows, filename = _custom_report(clinic.id, start, end)
        else:
            raise PaymentError(f"Invalid report type: {kind}. Expected one of: {', '.join(REPORT_TYPES)}")
    except OverflowError:
        raise PaymentError('report period is out of range')

    output = io.StringIO()
    writer = csv.writer(output, lineterminator='\n')
    writer.writerow([title])
    writer.writerow([f"Clinic: {clinic.clinic_name}"])
    writer.writerow([f"Generated: {now:%b %d, %Y %I:%M %p}"])
    writer.writerows(rows)
    return filename, output.getvalue()
