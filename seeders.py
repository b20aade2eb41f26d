"""
Demo data seeders for the clinic payments system
- Payment demo appointments (two unpaid, one paid)
- Demo clinic and doctor bootstrap
- Database reset
"""

from datetime import date, datetime, time, timedelta
from decimal import Decimal

from models import db, ClinicInfo, Doctor
from repository import ClinicRepository


def demo_appointments(today):
    """The three demo appointments, relative to ``today``."""
    two_days_ago = today - timedelta(days=2)
    return [
        {
            'owner_name': 'John Doe',
            'owner_phone': '+639171234567',
            'appointment_date': today - timedelta(days=1),
            'appointment_time': time(10, 0),
            'status': 'completed',
            'payment_status': 'unpaid',
            'notes': {
                'chief_complaint': 'Routine checkup for Buddy',
                'diagnosis': 'Healthy dog, no issues found',
                'plan_recommendations': 'Regular exercise, continue current diet',
            },
        },
        {
            'owner_name': 'Maria Santos',
            'owner_phone': '+639187654321',
            'appointment_date': today,
            'appointment_time': time(14, 0),
            'status': 'completed',
            'payment_status': 'unpaid',
            'notes': {
                'chief_complaint': 'Vaccination for kitten',
                'diagnosis': 'Healthy kitten, ready for vaccination',
                'plan_recommendations': 'Next vaccination in 3 weeks',
            },
        },
        {
            'owner_name': 'Pedro Garcia',
            'owner_phone': '+639199876543',
            'appointment_date': two_days_ago,
            'appointment_time': time(9, 30),
            'status': 'completed',
            'payment_status': 'paid',
            'amount': Decimal('500.00'),
            'payment_method': 'cash',
            'receipt_number': 'RCPT-2025-00001',
            'payment_date': datetime.combine(two_days_ago, time.min) + timedelta(hours=2),
            'notes': {
                'chief_complaint': 'Skin irritation',
                'diagnosis': 'Allergic dermatitis',
                'plan_recommendations': 'Prescribed medicated shampoo, avoid allergens',
            },
        },
    ]


class PaymentDemoSeeder:
    """Seeds completed appointments with mixed payment status for the first clinic.

    Not idempotent: every run inserts three new rows.
    """

    def __init__(self, repository=None, output=print, today=None):
        self.repository = repository if repository is not None else ClinicRepository()
        self.output = output
        self.today = today or date.today

    def run(self):
        clinic = self.repository.first_clinic()
        if clinic is None:
            self.output('No clinic found. Please create a clinic first.')
            return

        doctor = self.repository.first_doctor_for_clinic(clinic.id)

        for appointment_data in demo_appointments(self.today()):
            appointment_data['clinic_id'] = clinic.id
            appointment_data['doctor_id'] = doctor.id if doctor else None
            self.repository.create_appointment(appointment_data)

        self.output('Demo payment data created successfully!')
        self.output('- 2 unpaid completed appointments created')
        self.output('- 1 paid completed appointment created')


def seed_demo_clinic(output=print):
    """Create a demo clinic with one doctor unless a clinic already exists."""
    clinic = ClinicInfo.query.first()
    if clinic is not None:
        output(f"Clinic already exists: {clinic.clinic_name}")
        return clinic

    clinic = ClinicInfo(
        clinic_name='Happy Paws Veterinary Clinic',
        address='123 Rizal Avenue, Manila',
        contact_number='+63281234567',
    )
    db.session.add(clinic)
    db.session.flush()
    db.session.add(Doctor(
        clinic_id=clinic.id,
        first_name='Ana',
        last_name='Reyes',
        specialization='Veterinary Medicine',
    ))
    db.session.commit()
    output(f"Created demo clinic: {clinic.clinic_name}")
    return clinic


def reset_database(output=print):
    # WARNING: deletes all data
    db.session.remove()
    output('Dropping all tables...')
    db.drop_all()
    output('Creating all tables...')
    db.create_all()
