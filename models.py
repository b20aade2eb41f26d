import json
from datetime import date, datetime, time
from decimal import Decimal

from flask_sqlalchemy import SQLAlchemy

# Single shared SQLAlchemy instance initialized in app.py
db = SQLAlchemy()


def _as_date(value):
    if isinstance(value, str):
        return date.fromisoformat(value)
    if isinstance(value, datetime):
        return value.date()
    return value


def _as_time(value):
    if isinstance(value, str):
        return time.fromisoformat(value)
    return value


def _as_datetime(value):
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime.combine(value, time.min)
    return value


def _money(value):
    return None if value is None else f"{value:.2f}"


class ClinicInfo(db.Model):
    __tablename__ = 'clinic_infos'
    id = db.Column(db.Integer, primary_key=True)
    clinic_name = db.Column(db.String(150), nullable=False)
    address = db.Column(db.String(255))
    contact_number = db.Column(db.String(30))
    created_at = db.Column(db.DateTime, server_default=db.func.now())
    doctors = db.relationship('Doctor', backref='clinic', lazy=True)

    def to_dict(self):
        return {
            'id': self.id,
            'clinic_name': self.clinic_name,
            'address': self.address,
            'contact_number': self.contact_number,
        }


class Doctor(db.Model):
    __tablename__ = 'doctors'
    id = db.Column(db.Integer, primary_key=True)
    clinic_id = db.Column(db.Integer, db.ForeignKey('clinic_infos.id'), nullable=False)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    specialization = db.Column(db.String(100))
    appointments = db.relationship('Appointment', backref='doctor', lazy=True)

    @property
    def full_name(self):
        return f"Dr. {self.first_name} {self.last_name}"


class Appointment(db.Model):
    __tablename__ = 'appointments'

    # Fields accepted by Appointment.build()
    FILLABLE = (
        'clinic_id',
        'doctor_id',
        'owner_name',
        'owner_phone',
        'appointment_date',
        'appointment_time',
        'status',
        'notes',
        'consultation_notes',
        'payment_status',
        'amount',
        'payment_method',
        'receipt_number',
        'payment_date',
        'payment_notes',
    )

    id = db.Column(db.Integer, primary_key=True)
    clinic_id = db.Column(db.Integer, db.ForeignKey('clinic_infos.id'), nullable=False)
    doctor_id = db.Column(db.Integer, db.ForeignKey('doctors.id'))
    owner_name = db.Column(db.String(150), nullable=False)
    owner_phone = db.Column(db.String(30))
    appointment_date = db.Column(db.Date)
    appointment_time = db.Column(db.Time)
    status = db.Column(db.String(20), default='pending')
    consultation_notes = db.Column(db.Text)
    # payment fields
    payment_status = db.Column(db.String(20), nullable=False, default='unpaid')
    amount = db.Column(db.Numeric(10, 2))
    payment_method = db.Column(db.String(30))
    # not unique here: the demo data reuses one receipt number across runs
    receipt_number = db.Column(db.String(30))
    payment_date = db.Column(db.DateTime)
    payment_notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, server_default=db.func.now())
    updated_at = db.Column(db.DateTime, server_default=db.func.now(), onupdate=db.func.now())

    # legacy name for the consultation notes column
    notes = db.synonym('consultation_notes')

    clinic = db.relationship('ClinicInfo')
    receipt = db.relationship('PaymentReceipt', backref='appointment', uselist=False, lazy=True)

    @classmethod
    def build(cls, **fields):
        """Create an unsaved appointment from a field mapping.

        Raises TypeError for fields outside FILLABLE and ValueError when
        clinic_id is missing. Date, time and timestamp fields accept ISO
        strings; notes accepts a dict, which is stored as JSON.
        """
        unknown = sorted(set(fields) - set(cls.FILLABLE))
        if unknown:
            raise TypeError(f"Unknown appointment fields: {', '.join(unknown)}")
        if fields.get('clinic_id') is None:
            raise ValueError('clinic_id is required')

        data = dict(fields)
        if 'notes' in data:
            data['consultation_notes'] = data.pop('notes')
        notes = data.get('consultation_notes')
        if notes is not None and not isinstance(notes, str):
            data['consultation_notes'] = json.dumps(notes)

        if 'appointment_date' in data:
            data['appointment_date'] = _as_date(data['appointment_date'])
        if 'appointment_time' in data:
            data['appointment_time'] = _as_time(data['appointment_time'])
        if 'payment_date' in data:
            data['payment_date'] = _as_datetime(data['payment_date'])
        if data.get('amount') is not None:
            data['amount'] = Decimal(str(data['amount']))

        return cls(**data)

    @classmethod
    def completed_unpaid(cls, clinic_id=None):
        query = cls.query.filter_by(status='completed', payment_status='unpaid')
        if clinic_id is not None:
            query = query.filter_by(clinic_id=clinic_id)
        return query

    @property
    def clinical_notes(self):
        """Parsed consultation notes, or an empty dict."""
        if not self.consultation_notes:
            return {}
        try:
            parsed = json.loads(self.consultation_notes)
        except ValueError:
            return {}
        return parsed if isinstance(parsed, dict) else {}

    def is_paid(self):
        return self.payment_status == 'paid'

    def is_unpaid(self):
        return self.payment_status == 'unpaid'

    def to_dict(self):
        return {
            'id': self.id,
            'clinic_id': self.clinic_id,
            'doctor_id': self.doctor_id,
            'owner_name': self.owner_name,
            'owner_phone': self.owner_phone,
            'appointment_date': self.appointment_date.isoformat() if self.appointment_date else None,
            'appointment_time': self.appointment_time.strftime('%H:%M:%S') if self.appointment_time else None,
            'status': self.status,
            'notes': self.clinical_notes,
            'payment_status': self.payment_status,
            'amount': _money(self.amount),
            'payment_method': self.payment_method,
            'receipt_number': self.receipt_number,
            'payment_date': self.payment_date.isoformat() if self.payment_date else None,
        }


class PaymentReceipt(db.Model):
    __tablename__ = 'payment_receipts'
    id = db.Column(db.Integer, primary_key=True)
    receipt_number = db.Column(db.String(30), unique=True, nullable=False)
    appointment_id = db.Column(db.Integer, db.ForeignKey('appointments.id', ondelete='CASCADE'), nullable=False)
    clinic_id = db.Column(db.Integer, db.ForeignKey('clinic_infos.id', ondelete='CASCADE'), nullable=False)
    doctor_id = db.Column(db.Integer, db.ForeignKey('doctors.id', ondelete='SET NULL'))
    patient_name = db.Column(db.String(150), nullable=False)
    doctor_name = db.Column(db.String(220))
    service_description = db.Column(db.String(255), nullable=False)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    payment_method = db.Column(db.String(30), nullable=False)  # cash, credit_card, debit_card, gcash, paymaya
    payment_date = db.Column(db.DateTime, nullable=False)
    processed_by = db.Column(db.String(150), nullable=False)  # staff member who took the payment
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, server_default=db.func.now())

    def to_dict(self):
        return {
            'id': self.id,
            'receipt_number': self.receipt_number,
            'appointment_id': self.appointment_id,
            'clinic_id': self.clinic_id,
            'doctor_id': self.doctor_id,
            'patient_name': self.patient_name,
            'doctor_name': self.doctor_name,
            'service_description': self.service_description,
            'amount': _money(self.amount),
            'payment_method': self.payment_method,
            'payment_date': self.payment_date.isoformat(),
            'processed_by': self.processed_by,
            'notes': self.notes,
        }
