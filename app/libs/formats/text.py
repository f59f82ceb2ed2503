import re
import unicodedata


def generate_slug(name: str) -> str:
    """
    Sinh slug từ tên danh mục
    - Bỏ dấu
    - Viết thường, ký tự không phải chữ/số → "-"
    """
    if not name:
        return ""

    normalized = unicodedata.normalize("NFD", name)
    no_accents = "".join(c for c in normalized if unicodedata.category(c) != "Mn")
    text = re.sub(r"[^a-z0-9]+", "-", no_accents.lower())
    return re.sub(r"-{2,}", "-", text).strip("-")


def safe_filename(value: str, fallback: str = "download") -> str:
    """Tên file an toàn cho header Content-Disposition."""
    cleaned = re.sub(r"[^\w\s.\-()]+", "", value or "").strip()
    cleaned = re.sub(r"\s+", " ", cleaned)
    return cleaned or fallback

