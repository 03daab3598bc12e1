"""
Tests de las reglas de validación de los campos del formulario.
"""

import pytest

from trois_quarts.core import field_validation


@pytest.mark.parametrize("phone, valid", [
    ("0612345678", True),
    ("06 12 34 56 78", True),
    ("06.12.34.56.78", True),
    ("+33612345678", True),
    ("0812345678", False),
    ("061234567", False),
    ("", False),
])
def test_french_phone(phone, valid):
    assert field_validation.is_valid_french_phone(phone) is valid


def test_zip_code_format():
    assert field_validation.is_valid_french_zip_code("13001")
    assert field_validation.is_valid_french_zip_code(" 13 001 ")
    assert not field_validation.is_valid_french_zip_code("130")
    assert not field_validation.is_valid_french_zip_code(None)


def test_name_rules():
    assert field_validation.validate_name("Jean-Pierre", "firstName", "prénom")
    assert field_validation.validate_name("Éloïse", "firstName", "prénom")
    assert not field_validation.validate_name("J", "firstName", "prénom")
    assert not field_validation.validate_name("Jean3", "firstName", "prénom")
    result = field_validation.validate_name("", "lastName", "nom")
    assert result.field == "lastName"
    assert result.message == "Veuillez renseigner votre nom"


def test_free_text_rejects_scripts_and_long_values():
    assert field_validation.validate_free_text(None, "instructions", 500)
    assert not field_validation.validate_free_text("<script>x</script>", "instructions", 500)
    assert not field_validation.validate_free_text('<img onerror="x">', "address", 255)
    assert not field_validation.validate_free_text("a" * 256, "address", 255)


def test_email():
    assert field_validation.validate_email("marie@example.fr")
    assert not field_validation.validate_email("marie@")
