from app.utils.validators import normalize_phone, is_valid_phone, validate_amount
from app.utils.certificates import CertificatePair, load_certificate_pair

__all__ = [
    "normalize_phone", "is_valid_phone", "validate_amount",
    "CertificatePair", "load_certificate_pair",
]
