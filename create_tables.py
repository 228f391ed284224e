"""
Simple script to create the users, conversation thread and message tables.
Run this once to set up the tables in your database.

Usage: python create_tables.py
"""

from sqlalchemy import inspect
from models import Base, ConversationThread, ConversationMessage, User  # Import models to register them
from database import engine

if __name__ == "__main__":
    print("Creating database tables...")

    # Create all tables
    Base.metadata.create_all(bind=engine)

    # Verify tables were created
    existing = set(inspect(engine).get_table_names())
    for table in (User.__tablename__, ConversationThread.__tablename__, ConversationMessage.__tablename__):
        if table in existing:
            print(f"✓ {table} table created successfully!")
        else:
            print(f"✗ Failed to create {table} table")

    engine.dispose()
