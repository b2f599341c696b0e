"""
Поддерживаемые языки Tesseract.

Коды — имена traineddata файлов Tesseract. Составной язык
записывается через "+": "rus+eng".
"""

from ocr_api.exceptions import UnsupportedLanguageError

SUPPORTED_LANGUAGES: dict[str, str] = {
    "eng": "English",
    "ara": "Arabic",
    "ben": "Bengali",
    "bul": "Bulgarian",
    "ces": "Czech",
    "chi_sim": "Chinese (Simplified)",
    "chi_tra": "Chinese (Traditional)",
    "dan": "Danish",
    "deu": "German",
    "ell": "Greek",
    "fin": "Finnish",
    "fra": "French",
    "heb": "Hebrew",
    "hin": "Hindi",
    "hun": "Hungarian",
    "ind": "Indonesian",
    "ita": "Italian",
    "jpn": "Japanese",
    "kor": "Korean",
    "nld": "Dutch",
    "nor": "Norwegian",
    "pol": "Polish",
    "por": "Portuguese",
    "ron": "Romanian",
    "rus": "Russian",
    "spa": "Spanish",
    "swe": "Swedish",
    "tha": "Thai",
    "tur": "Turkish",
    "ukr": "Ukrainian",
    "vie": "Vietnamese",
}


def validate_language(language: str) -> list[str]:
    """
    Проверяет, что каждый компонент языка поддерживается.

    Args:
        language: код языка или составной код ("rus+eng")

    Returns:
        list[str]: список компонентов в исходном порядке

    Raises:
        UnsupportedLanguageError: если хотя бы один компонент не поддерживается
    """
    components = [part.strip() for part in (language or "").split("+")]

    for code in components:
        if code not in SUPPORTED_LANGUAGES:
            raise UnsupportedLanguageError(
                f"Unsupported language: {code or '<empty>'}",
                details={"language": language},
            )

    return components


def list_languages() -> list[dict]:
    """Список языков в виде {code, name} для API."""
    return [
        {"code": code, "name": name}
        for code, name in SUPPORTED_LANGUAGES.items()
    ]
