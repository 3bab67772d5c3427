"""Load plain-text documents from disk."""

from pathlib import Path

TEXT_SUFFIXES = {".txt", ".md", ".markdown"}


def load_document(path: Path) -> str:
    """
    Load a document and return its text.

    Only plain-text formats are read here; PDF and DOCX decoding happen upstream.
    """
    suffix = path.suffix.lower()

    if suffix in TEXT_SUFFIXES:
        return load_txt(path)
    raise ValueError(f"Unsupported file format: {suffix}")


def load_txt(path: Path) -> str:
    """Load a plain text file."""
    # Try common encodings
    for encoding in ["utf-8", "utf-8-sig", "latin-1", "cp1252"]:
        try:
            return path.read_text(encoding=encoding)
        except UnicodeDecodeError:
            continue

    raise ValueError(f"Could not decode {path} with any common encoding")
