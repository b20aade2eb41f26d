"""
Configuration for the clinic payments application
"""

import os

# Flask configuration
SECRET_KEY = os.environ.get('SECRET_KEY', 'dev-secret-key-change-in-production')

# Database
BASE_DIR = os.path.dirname(os.path.abspath(__file__))
DATABASE_URI = os.environ.get(
    'DATABASE_URL',
    'sqlite:///' + os.path.join(BASE_DIR, 'clinic_payments.db'),
)

# Payment settings
PAYMENT_METHODS = ('cash', 'credit_card', 'debit_card', 'gcash', 'paymaya')
PAYMENT_STATUSES = ('unpaid', 'paid', 'refunded')
RECEIPT_PREFIX = 'RCPT'
SERVICE_DESCRIPTION_MAX_LENGTH = 255
