# backend/trois_quarts/core/field_validation.py
"""
Validaciones de campos del formulario de pedido.

Las usan tanto el controlador de pasos del checkout (lado cliente) como los
esquemas de creación de pedido del servidor, para que ambos lados acepten y
rechacen exactamente los mismos valores.
"""
import re
from typing import Optional

from trois_quarts.core.exceptions import ValidationResult

NAME_REGEX = re.compile(r"^[a-zA-ZÀ-ÿ\s\-']+$")
EMAIL_REGEX = re.compile(r"^[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}$")
LOCAL_PHONE_REGEX = re.compile(r"^0[1-7]\d{8}$")
INTERNATIONAL_PHONE_REGEX = re.compile(r"^\+33[1-7]\d{8}$")
ZIP_REGEX = re.compile(r"^\d{5}$")
XSS_REGEX = re.compile(r"<\s*script|javascript:|on\w+\s*=|<\s*iframe", re.IGNORECASE)

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 100
ADDRESS_MAX_LENGTH = 255
INSTRUCTIONS_MAX_LENGTH = 500


def clean_zip_code(zip_code: str) -> str:
    return re.sub(r"[^0-9]", "", zip_code or "")


def is_valid_french_zip_code(zip_code: Optional[str]) -> bool:
    return bool(ZIP_REGEX.match(clean_zip_code(zip_code or "")))


def is_valid_french_phone(phone: Optional[str]) -> bool:
    if not phone:
        return False
    cleaned = re.sub(r"[\s\-.]", "", phone)
    return bool(LOCAL_PHONE_REGEX.match(cleaned) or INTERNATIONAL_PHONE_REGEX.match(cleaned))


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email and EMAIL_REGEX.match(email.strip()))


def contains_xss_attempt(value: Optional[str]) -> bool:
    return bool(value and XSS_REGEX.search(value))


def validate_name(value: Optional[str], field: str, label: str) -> ValidationResult:
    value = (value or "").strip()
    if not value:
        return ValidationResult.fail(f"Veuillez renseigner votre {label}", field)
    if contains_xss_attempt(value):
        return ValidationResult.fail(f"Le {label} contient des éléments non autorisés", field)
    if not (NAME_MIN_LENGTH <= len(value) <= NAME_MAX_LENGTH):
        return ValidationResult.fail(
            f"Le {label} doit contenir entre {NAME_MIN_LENGTH} et {NAME_MAX_LENGTH} caractères", field
        )
    if not NAME_REGEX.match(value):
        return ValidationResult.fail(f"Le {label} contient des caractères invalides", field)
    return ValidationResult.ok()


def validate_phone(value: Optional[str]) -> ValidationResult:
    if not (value or "").strip():
        return ValidationResult.fail("Veuillez renseigner votre numéro de téléphone", "phone")
    if not is_valid_french_phone(value):
        return ValidationResult.fail("Veuillez entrer un numéro de téléphone français valide", "phone")
    return ValidationResult.ok()


def validate_email(value: Optional[str]) -> ValidationResult:
    if not (value or "").strip():
        return ValidationResult.fail("Veuillez renseigner votre adresse email", "email")
    if not is_valid_email(value):
        return ValidationResult.fail("Veuillez renseigner une adresse email valide", "email")
    return ValidationResult.ok()


def validate_free_text(value: Optional[str], field: str, max_length: int) -> ValidationResult:
    if value and contains_xss_attempt(value):
        return ValidationResult.fail("Le champ contient des éléments non autorisés", field)
    if value and len(value) > max_length:
        return ValidationResult.fail(f"Le champ ne peut pas dépasser {max_length} caractères", field)
    return ValidationResult.ok()
