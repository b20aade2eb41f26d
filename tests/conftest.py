import pytest

from app import create_app
from models import db, ClinicInfo, Doctor


@pytest.fixture
def app():
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
    })
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


@pytest.fixture
def clinic(app):
    clinic = ClinicInfo(clinic_name='Main Street Animal Clinic', contact_number='+63281110000')
    db.session.add(clinic)
    db.session.commit()
    return clinic


@pytest.fixture
def doctor(clinic):
    doctor = Doctor(clinic_id=clinic.id, first_name='Jose', last_name='Rizal', specialization='Surgery')
    db.session.add(doctor)
    db.session.commit()
    return doctor
