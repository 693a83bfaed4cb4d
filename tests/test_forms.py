from scam_registry.schemas.forms import LoginForm, OTPForm, RegisterForm, validate_form


def test_login_form_with_email():
    form, errors = validate_form(LoginForm, {"email": "a@b.com", "password": "hunter2"})

    assert errors == {}
    assert form.email == "a@b.com"


def test_contact_is_required():
    form, errors = validate_form(RegisterForm, {})

    assert form is None
    assert errors == {"email": "Either email or phone number is required"}


def test_short_phone_number_rejected():
    form, errors = validate_form(RegisterForm, {"phone_number": "555-1234"})

    assert form is None
    assert errors["phone_number"] == "Phone number must be at least 10 digits"


def test_phone_number_only():
    form, errors = validate_form(RegisterForm, {"phone_number": " (555) 123-4567 "})

    assert errors == {}
    assert form.phone_number == "(555) 123-4567"
    assert form.email is None


def test_invalid_email_reported_on_field():
    _, errors = validate_form(LoginForm, {"email": "not-an-email"})

    assert "email" in errors


def test_otp_form():
    form, errors = validate_form(OTPForm, {"otp": "482 913"})
    assert errors == {}
    assert form.otp == "482913"

    _, errors = validate_form(OTPForm, {"otp": "4829"})
    assert errors == {"otp": "OTP must be 6 digits"}
