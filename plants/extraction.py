import re
from typing import NamedTuple

# Ответ модели - свободный текст без схемы, поэтому берем только первое совпадение.
# Шаблон намеренно узкий: ровно два слова ("Ficus benjamina"), гибридные и
# трехчастные названия не ловятся.
# re.ASCII: иначе [A-Z]/[a-z] при IGNORECASE ловят "ı", "ſ" и знак Кельвина.
# Пробелы и "любой символ" заданы явно, с юникодными пробелами и разделителями строк.
_SPACE = (
    r"[\t\n\v\f\r \N{NO-BREAK SPACE}\N{OGHAM SPACE MARK}\N{EN QUAD}-\N{HAIR SPACE}"
    r"\N{LINE SEPARATOR}\N{PARAGRAPH SEPARATOR}\N{NARROW NO-BREAK SPACE}"
    r"\N{MEDIUM MATHEMATICAL SPACE}\N{IDEOGRAPHIC SPACE}\N{ZERO WIDTH NO-BREAK SPACE}]"
)
_ANY = r"[^\n\r\N{LINE SEPARATOR}\N{PARAGRAPH SEPARATOR}]"

_SCIENTIFIC_RE = re.compile(
    rf"Scientific name{_ANY}*?:{_SPACE}*([A-Z][a-z]+ [a-z]+)",
    re.IGNORECASE | re.ASCII,
)
_COMMON_RE = re.compile(
    rf"Common name{_ANY}*?:{_SPACE}*([^\n]+)",
    re.IGNORECASE | re.ASCII,
)


class ExtractedNames(NamedTuple):
    scientific_name: str
    common_name: str


def extract_plant_data(text: str) -> ExtractedNames:
    """
    Достает научное и обычное название из ответа модели.
    Никогда не падает: если метки нет, поле остается пустой строкой.
    """
    text = text or ""
    scientific_name = ""
    common_name = ""

    match = _SCIENTIFIC_RE.search(text)
    if match:
        scientific_name = match.group(1)

    match = _COMMON_RE.search(text)
    if match:
        common_name = match.group(1).strip()

    return ExtractedNames(scientific_name, common_name)
