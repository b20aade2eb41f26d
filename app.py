from datetime import date

import click
from flask import Flask, request, jsonify, abort

import config
from models import db, Appointment, ClinicInfo, PaymentReceipt
from payments import PaymentError, process_payment, daily_summary, payment_report
from seeders import PaymentDemoSeeder, seed_demo_clinic, reset_database


# ---------------- HELPER FUNCTIONS ----------------
def _check_clinic(record, clinic_id):
    if record.clinic_id != clinic_id:
        abort(403, description='Unauthorized access for this clinic')


def _register_commands(app):
    @app.cli.command('seed-payments')
    def seed_payments_command():
        """Create demo completed appointments (2 unpaid, 1 paid)."""
        PaymentDemoSeeder(output=click.echo).run()

    @app.cli.command('seed-demo-clinic')
    def seed_demo_clinic_command():
        """Create a demo clinic and doctor if no clinic exists."""
        seed_demo_clinic(output=click.echo)

    @app.cli.command('reset-db')
    @click.confirmation_option(prompt='This deletes all data. Continue?')
    def reset_db_command():
        """Drop and recreate all tables."""
        reset_database(output=click.echo)
        click.echo('Database reset.')


def create_app(test_config=None):
    app = Flask(__name__)
    app.config['SQLALCHEMY_DATABASE_URI'] = config.DATABASE_URI
    app.config['SQLALCHEMY_TRACK_MODIFICATIONS'] = False
    app.secret_key = config.SECRET_KEY
    if test_config:
        app.config.update(test_config)
    print(f"[DB] Using database at: {app.config['SQLALCHEMY_DATABASE_URI']}")

    # Initialize database
    db.init_app(app)
    with app.app_context():
        db.create_all()

    _register_commands(app)

    @app.errorhandler(403)
    @app.errorhandler(404)
    def json_error(error):
        return jsonify({'error': error.description}), error.code

    # ---------------- PAYMENT ENDPOINTS ----------------
    @app.route('/api/clinics/<int:clinic_id>/payments/unpaid')
    def api_unpaid_appointments(clinic_id):
        appts = (Appointment.completed_unpaid(clinic_id)
                 .order_by(Appointment.appointment_date.desc())
                 .all())
        return jsonify([a.to_dict() for a in appts])

    @app.route('/api/clinics/<int:clinic_id>/appointments/<int:appointment_id>/payment', methods=['POST'])
    def api_process_payment(clinic_id, appointment_id):
        appointment = db.get_or_404(Appointment, appointment_id)
        _check_clinic(appointment, clinic_id)

        data = request.get_json(silent=True)
        if data is None:
            data = {}
        if not isinstance(data, dict):
            return jsonify({'error': 'request body must be a JSON object'}), 400
        if data.get('amount') is None:
            return jsonify({'error': 'amount is required'}), 400
        try:
            receipt = process_payment(
                appointment,
                amount=data['amount'],
                payment_method=data.get('payment_method'),
                service_description=data.get('service_description'),
                processed_by=data.get('processed_by'),
                payment_notes=data.get('payment_notes'),
            )
        except PaymentError as e:
            return jsonify({'error': str(e)}), 400
        return jsonify({'ok': True, 'receipt': receipt.to_dict()}), 201

    @app.route('/api/clinics/<int:clinic_id>/receipts/<int:receipt_id>')
    def api_receipt(clinic_id, receipt_id):
        receipt = db.get_or_404(PaymentReceipt, receipt_id)
        _check_clinic(receipt, clinic_id)
        return jsonify(receipt.to_dict())

    @app.route('/api/clinics/<int:clinic_id>/payments/summary')
    def api_payment_summary(clinic_id):
        raw_date = request.args.get('date')
        try:
            day = date.fromisoformat(raw_date) if raw_date else date.today()
        except ValueError:
            return jsonify({'error': 'date must be YYYY-MM-DD'}), 400
        return jsonify(daily_summary(clinic_id, day))

    @app.route('/api/clinics/<int:clinic_id>/payments/report')
    def api_payment_report(clinic_id):
        clinic = db.get_or_404(ClinicInfo, clinic_id)
        args = request.args
        try:
            day, start, end = (
                date.fromisoformat(args[key]) if args.get(key) else None
                for key in ('date', 'start', 'end')
            )
            year = int(args['year']) if args.get('year') else None
            month = int(args['month']) if args.get('month') else None
        except ValueError:
            return jsonify({'error': 'dates must be YYYY-MM-DD, year and month must be integers'}), 400

        try:
            filename, body = payment_report(
                clinic,
                kind=args.get('type', 'weekly'),
                day=day,
                start=start,
                end=end,
                year=year,
                month=month,
            )
        except PaymentError as e:
            return jsonify({'error': str(e)}), 400
        return body, 200, {
            'Content-Type': 'text/csv; charset=utf-8',
            'Content-Disposition': f'attachment; filename="{filename}"',
        }

    return app


# ---------------- MAIN ----------------
if __name__ == '__main__':
    app = create_app()
    app.run(debug=True, host='127.0.0.1', port=5000)
