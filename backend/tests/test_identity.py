import pytest

from jobdesk.identity import derive_client_id


def test_same_input_same_key():
    a = derive_client_id(email="juan@x.com", phone="1122334455", name="Juan")
    b = derive_client_id(email="juan@x.com", phone="1122334455", name="Juan")
    assert a == b


def test_email_is_normalized():
    assert derive_client_id(email="A@B.com") == "client_abcom"
    assert derive_client_id(email=" a@b.com ") == "client_abcom"


def test_email_wins_over_phone_and_name():
    assert derive_client_id(email="juan@x.com", phone="+54 11 4444-5555", name="Juan Perez") == "client_juanxcom"


def test_phone_fallback_keeps_digits_only():
    assert derive_client_id(phone="+54 (11) 4444-5555", name="Juan") == "client_tel_541144445555"


def test_short_phone_falls_back_to_name():
    assert derive_client_id(phone="12345", name="  Juan   Perez ") == "client_juan_perez"


def test_blank_email_is_ignored():
    assert derive_client_id(email="   ", phone="1122334455") == "client_tel_1122334455"


def test_email_without_alnum_falls_through():
    assert derive_client_id(email="@.", name="Ana") == "client_ana"


def test_nothing_usable_raises():
    with pytest.raises(ValueError):
        derive_client_id(email=None, phone="12", name="   ")
