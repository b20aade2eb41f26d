from datetime import date, datetime

import pytest

from models import db, Appointment, ClinicInfo, PaymentReceipt
from seeders import PaymentDemoSeeder


@pytest.fixture
def seeded(clinic, doctor):
    PaymentDemoSeeder(output=lambda line: None, today=lambda: date(2026, 1, 15)).run()
    return clinic


def _unpaid_id(clinic_id, owner_name):
    return Appointment.query.filter_by(clinic_id=clinic_id, owner_name=owner_name).first().id


def test_unpaid_appointments(client, seeded):
    res = client.get(f'/api/clinics/{seeded.id}/payments/unpaid')

    assert res.status_code == 200
    assert [a['owner_name'] for a in res.get_json()] == ['Maria Santos', 'John Doe']


def test_unpaid_appointments_other_clinic(client, seeded):
    res = client.get(f'/api/clinics/{seeded.id + 1}/payments/unpaid')
    assert res.get_json() == []


def test_process_payment(client, seeded):
    appt_id = _unpaid_id(seeded.id, 'John Doe')
    res = client.post(f'/api/clinics/{seeded.id}/appointments/{appt_id}/payment', json={
        'amount': '350.00',
        'payment_method': 'debit_card',
        'service_description': 'Routine checkup',
        'processed_by': 'Front Desk',
    })

    assert res.status_code == 201
    receipt = res.get_json()['receipt']
    assert receipt['receipt_number'] == f'RCPT-{datetime.now().year}-00001'
    assert receipt['amount'] == '350.00'
    assert receipt['doctor_name'] == 'Dr. Jose Rizal'

    db.session.expire_all()
    assert db.session.get(Appointment, appt_id).is_paid()
    assert [a['owner_name'] for a in client.get(f'/api/clinics/{seeded.id}/payments/unpaid').get_json()] == [
        'Maria Santos',
    ]


def test_process_payment_rejects_paid_appointment(client, seeded):
    pedro = Appointment.query.filter_by(owner_name='Pedro Garcia').first()
    res = client.post(f'/api/clinics/{seeded.id}/appointments/{pedro.id}/payment', json={
        'amount': 100, 'payment_method': 'cash', 'service_description': 'Checkup',
    })

    assert res.status_code == 400
    assert 'completed unpaid' in res.get_json()['error']


def test_process_payment_requires_amount(client, seeded):
    appt_id = _unpaid_id(seeded.id, 'John Doe')
    res = client.post(f'/api/clinics/{seeded.id}/appointments/{appt_id}/payment', json={
        'payment_method': 'cash', 'service_description': 'Checkup',
    })
    assert res.status_code == 400
    assert PaymentReceipt.query.count() == 0


def test_process_payment_wrong_clinic(client, seeded):
    other = ClinicInfo(clinic_name='Other Clinic')
    db.session.add(other)
    db.session.commit()

    appt_id = _unpaid_id(seeded.id, 'John Doe')
    res = client.post(f'/api/clinics/{other.id}/appointments/{appt_id}/payment', json={
        'amount': 100, 'payment_method': 'cash', 'service_description': 'Checkup',
    })
    assert res.status_code == 403
    assert 'error' in res.get_json()


def test_process_payment_unknown_appointment(client, seeded):
    res = client.post(f'/api/clinics/{seeded.id}/appointments/9999/payment', json={'amount': 100})
    assert res.status_code == 404


def test_receipt_lookup(client, seeded):
    appt_id = _unpaid_id(seeded.id, 'Maria Santos')
    created = client.post(f'/api/clinics/{seeded.id}/appointments/{appt_id}/payment', json={
        'amount': 200, 'payment_method': 'cash', 'service_description': 'Vaccination',
    }).get_json()['receipt']

    res = client.get(f"/api/clinics/{seeded.id}/receipts/{created['id']}")
    assert res.status_code == 200
    assert res.get_json()['patient_name'] == 'Maria Santos'
    assert res.get_json()['processed_by'] == 'Staff'

    assert client.get(f"/api/clinics/{seeded.id + 1}/receipts/{created['id']}").status_code == 403


def test_payment_summary(client, seeded):
    appt_id = _unpaid_id(seeded.id, 'John Doe')
    client.post(f'/api/clinics/{seeded.id}/appointments/{appt_id}/payment', json={
        'amount': 120, 'payment_method': 'gcash', 'service_description': 'Checkup',
    })

    res = client.get(f'/api/clinics/{seeded.id}/payments/summary?date={date.today().isoformat()}')
    data = res.get_json()
    assert res.status_code == 200
    assert data['daily_total'] == '120.00'
    assert data['payment_methods'] == {'gcash': {'count': 1, 'total': '120.00'}}


def test_payment_summary_bad_date(client, clinic):
    res = client.get(f'/api/clinics/{clinic.id}/payments/summary?date=15-01-2026')
    assert res.status_code == 400


@pytest.mark.parametrize('payload', [
    {'amount': '1e30', 'payment_method': 'cash', 'service_description': 'Checkup'},
    {'amount': 100, 'payment_method': 'cash', 'service_description': 123},
    {'amount': 100, 'payment_method': 'cash', 'service_description': 'Checkup', 'payment_notes': 5},
])
def test_process_payment_rejects_bad_fields(client, seeded, payload):
    appt_id = _unpaid_id(seeded.id, 'John Doe')
    res = client.post(f'/api/clinics/{seeded.id}/appointments/{appt_id}/payment', json=payload)

    assert res.status_code == 400
    assert 'error' in res.get_json()
    assert PaymentReceipt.query.count() == 0


@pytest.mark.parametrize('body', [[1], 'cash', 100])
def test_process_payment_requires_json_object(client, seeded, body):
    appt_id = _unpaid_id(seeded.id, 'John Doe')
    res = client.post(f'/api/clinics/{seeded.id}/appointments/{appt_id}/payment', json=body)

    assert res.status_code == 400
    assert res.get_json()['error'] == 'request body must be a JSON object'


def test_payment_report_csv(client, seeded):
    appt_id = _unpaid_id(seeded.id, 'John Doe')
    client.post(f'/api/clinics/{seeded.id}/appointments/{appt_id}/payment', json={
        'amount': 500, 'payment_method': 'cash', 'service_description': 'Checkup',
    })
    today = date.today().isoformat()
    res = client.get(f'/api/clinics/{seeded.id}/payments/report?type=custom&start={today}&end={today}')

    assert res.status_code == 200
    assert res.content_type.startswith('text/csv')
    assert res.headers['Content-Disposition'] == (
        f'attachment; filename="custom_report_{today}_to_{today}.csv"'
    )
    lines = res.get_data(as_text=True).splitlines()
    assert lines[0] == 'CUSTOM PERIOD FINANCIAL REPORT'
    assert lines[1] == 'Clinic: Main Street Animal Clinic'
    assert 'Duration: 1 days' in lines
    assert 'Total Revenue,PHP 500.00' in lines
    assert 'Total Transactions,1' in lines


def test_payment_report_defaults_to_weekly(client, clinic):
    res = client.get(f'/api/clinics/{clinic.id}/payments/report')

    assert res.status_code == 200
    assert res.get_data(as_text=True).startswith('WEEKLY FINANCIAL REPORT\n')
    assert 'filename="weekly_report_' in res.headers['Content-Disposition']


@pytest.mark.parametrize('query', [
    'type=bogus',
    'type=monthly&month=abc',
    'type=monthly&month=13',
    'type=daily&date=15-01-2026',
    'type=custom&start=2026-01-01',
])
def test_payment_report_bad_request(client, clinic, query):
    res = client.get(f'/api/clinics/{clinic.id}/payments/report?{query}')

    assert res.status_code == 400
    assert 'error' in res.get_json()


def test_payment_report_unknown_clinic(client, clinic):
    res = client.get(f'/api/clinics/{clinic.id + 1}/payments/report?type=daily')
    assert res.status_code == 404


# ---------------- CLI ----------------

def test_cli_seed_payments_without_clinic(runner):
    result = runner.invoke(args=['seed-payments'])

    assert result.exit_code == 0
    assert result.output.strip() == 'No clinic found. Please create a clinic first.'
    assert Appointment.query.count() == 0


def test_cli_seed_demo_clinic_then_payments(runner):
    result = runner.invoke(args=['seed-demo-clinic'])
    assert 'Created demo clinic' in result.output

    result = runner.invoke(args=['seed-payments'])
    assert result.exit_code == 0
    assert 'Demo payment data created successfully!' in result.output
    assert Appointment.query.count() == 3
    assert Appointment.query.filter(Appointment.doctor_id.isnot(None)).count() == 3


def test_cli_reset_db(runner, seeded):
    result = runner.invoke(args=['reset-db', '--yes'])

    assert result.exit_code == 0
    assert 'Database reset.' in result.output
    assert Appointment.query.count() == 0
