import secrets

import bcrypt

from app.core.config import settings


def hash_secret(value: str) -> str:
    """Hashear contraseña o código de verificación con bcrypt"""
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(value.encode("utf-8"), salt).decode("utf-8")


def verify_secret(value: str, hashed: str) -> bool:
    if not value or not hashed:
        return False
    try:
        return bcrypt.checkpw(value.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def generate_verification_code() -> str:
    """Código numérico de 6 dígitos"""
    return f"{secrets.randbelow(1_000_000):06d}"


def generate_ticket_code() -> str:
    """Código de ticket opaco: 20 caracteres hex (10 bytes aleatorios)"""
    return secrets.token_hex(10)
