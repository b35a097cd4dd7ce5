import getpass

from sqlalchemy.orm import Session

import models
from auth import get_password_hash
from database import SessionLocal, engine


class AdminCreationError(Exception):
    pass


def create_admin(db: Session, full_name: str, email: str, password: str) -> models.User:
    """Creates an admin account. Admins cannot sign up through the API."""
    full_name = full_name.strip()
    email = email.strip().lower()
    if not all([full_name, email, password]):
        raise AdminCreationError("Full name, email, and password cannot be empty.")
    if len(password) < 6:
        raise AdminCreationError("Password must be at least 6 characters.")

    existing_user = db.query(models.User).filter(models.User.email == email).first()
    if existing_user:
        raise AdminCreationError(
            f"A {existing_user.role} with the email '{email}' already exists; "
            "accounts cannot change kind."
        )

    admin_user = models.User(
        full_name=full_name,
        email=email,
        hashed_password=get_password_hash(password),
        role=models.RoleType.ADMIN.value,
    )
    db.add(admin_user)
    db.commit()
    db.refresh(admin_user)
    return admin_user


def create_admin_user():
    """
    A command-line script to create an initial admin user for the application.
    """
    print("--- Create Admin User ---")

    # Establish a database session
    db: Session = SessionLocal()

    try:
        full_name = input("Enter admin's full name: ")
        email = input("Enter admin's email address: ")

        # Get password securely
        password = getpass.getpass("Enter a password for the admin: ")
        password_confirm = getpass.getpass("Confirm the password: ")

        if password != password_confirm:
            print("\nError: Passwords do not match. Please try again.")
            return

        try:
            admin_user = create_admin(db, full_name, email, password)
        except AdminCreationError as e:
            print(f"\nError: {e}")
            return

        print(f"\nSuccess! Admin user '{admin_user.full_name}' with email '{admin_user.email}' created.")

    finally:
        db.close()


if __name__ == "__main__":
    # Create the database tables if they don't exist
    models.Base.metadata.create_all(bind=engine)
    create_admin_user()
