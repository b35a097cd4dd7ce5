import pytest

from create_admin import AdminCreationError, create_admin


def test_create_admin(db):
    admin = create_admin(db, " Root ", "Root@Example.com", "s3cret!")

    assert admin.role == "admin"
    assert admin.email == "root@example.com"
    assert admin.full_name == "Root"
    assert admin.verify_password("s3cret!")
    assert not admin.verify_password("wrong")


def test_existing_account_is_not_converted(db, make_user):
    employer = make_user("employer", email="boss@example.com")

    with pytest.raises(AdminCreationError, match="employer"):
        create_admin(db, "Boss", "boss@example.com", "s3cret!")
    db.refresh(employer)
    assert employer.role == "employer"


@pytest.mark.parametrize("name, email, password", [("", "a@example.com", "s3cret!"), ("A", "a@example.com", "123")])
def test_rejects_incomplete_input(db, name, email, password):
    with pytest.raises(AdminCreationError):
        create_admin(db, name, email, password)
