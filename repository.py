"""
Data access used by the seeders
"""

from models import db, ClinicInfo, Doctor, Appointment


class ClinicRepository:
    """Clinic, doctor and appointment access over a SQLAlchemy session."""

    def __init__(self, session=None):
        self.session = session if session is not None else db.session

    def first_clinic(self):
        return self.session.query(ClinicInfo).first()

    def first_doctor_for_clinic(self, clinic_id):
        return self.session.query(Doctor).filter_by(clinic_id=clinic_id).first()

    def create_appointment(self, fields):
        # one commit per row, earlier rows stay if a later insert fails
        appointment = Appointment.build(**fields)
        self.session.add(appointment)
        self.session.commit()
        return appointment
