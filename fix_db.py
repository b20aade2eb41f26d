"""
Script to rebuild the database and load the demo data
Run this if you get schema errors or want a fresh demo
"""

from app import create_app
from seeders import PaymentDemoSeeder, reset_database, seed_demo_clinic

app = create_app()

with app.app_context():
    # Drop all tables (WARNING: This will delete all data!)
    reset_database()

    print("Seeding demo clinic...")
    seed_demo_clinic()

    print("Seeding demo payments...")
    PaymentDemoSeeder().run()

    print("Database fixed! You can now run the server.")
    print("Note: All previous data has been deleted.")
