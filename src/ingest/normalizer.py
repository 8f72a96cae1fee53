from __future__ import annotations

import re
from typing import List, Sequence

from src.models import Record

NAME_COLUMNS = [
    "name",
    "product_name",
    "productname",
    "product",
    "nom",
    "nom_produit",
    "nomproduit",
    "produit",
    "title",
    "titre",
    "description",
    "item",
    "article",
    "reference",
    "ref",
    "sku",
]

UNKNOWN_NAME = "Unknown Product"
NAME_MAX_LENGTH = 50


def _non_blank_lines(content: str) -> List[str]:
    lines = [line.strip() for line in re.split(r"\r?\n", content)]
    return [line for line in lines if line]


def detect_delimiter(content: str) -> str:
    """Pick tab, semicolon or comma by first-line counts; tab wins ties, then semicolon."""
    lines = _non_blank_lines(content) if content else []
    first_line = lines[0] if lines else ""
    commas = first_line.count(",")
    semicolons = first_line.count(";")
    tabs = first_line.count("\t")

    if tabs >= commas and tabs >= semicolons:
        return "\t"
    if semicolons >= commas:
        return ";"
    return ","


def split_line(line: str, delimiter: str) -> List[str]:
    cells: List[str] = []
    current: List[str] = []
    in_quotes = False
    index = 0
    while index < len(line):
        char = line[index]
        if char == '"':
            if in_quotes and index + 1 < len(line) and line[index + 1] == '"':
                current.append('"')
                index += 1
            else:
                in_quotes = not in_quotes
        elif char == delimiter and not in_quotes:
            cells.append("".join(current).strip())
            current = []
        else:
            current.append(char)
        index += 1

    cells.append("".join(current).strip())
    return cells


def is_tabular(content: str) -> bool:
    lines = _non_blank_lines(content)
    if len(lines) < 2:
        return False

    delimiter = detect_delimiter(content)
    first_cols = len(split_line(lines[0], delimiter))
    second_cols = len(split_line(lines[1], delimiter))
    return first_cols >= 2 and abs(first_cols - second_cols) <= 1


def _normalize_header(header: str) -> str:
    return re.sub(r"[^0-9a-z]", "", header.lower())


def display_name(headers: Sequence[str], row: Sequence[str]) -> str:
    normalized = [_normalize_header(header) for header in headers]
    for column in NAME_COLUMNS:
        target = _normalize_header(column)
        if target in normalized:
            idx = normalized.index(target)
            if idx < len(row) and row[idx].strip():
                return row[idx].strip()

    for cell in row:
        if cell and cell.strip():
            return cell.strip()[:NAME_MAX_LENGTH]

    return UNKNOWN_NAME


def parse_table(content: str) -> List[Record]:
    lines = _non_blank_lines(content)
    if not lines:
        return []

    delimiter = detect_delimiter(content)
    headers = split_line(lines[0], delimiter)
    records: List[Record] = []
    for line in lines[1:]:
        row = split_line(line, delimiter)
        if not any(cell for cell in row):
            continue
        pairs = tuple(
            (header, row[idx])
            for idx, header in enumerate(headers)
            if idx < len(row) and row[idx]
        )
        records.append(Record(fields=pairs, name=display_name(headers, row)))
    return records


def normalize(content: str) -> List[Record]:
    """Turn raw input into independent records: one per table row, or one free-text record."""
    if not content or not content.strip():
        return []
    if is_tabular(content):
        return parse_table(content)
    return [Record.from_text(content)]
