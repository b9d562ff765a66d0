"""Reading and writing the one-line record files that hold a Spotify URI."""

from pathlib import Path

from .errors import InvalidArgumentError, NotFoundError


def read_record(path: Path | str) -> str:
    """Return the URI on the first line of a record file."""
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as record_file:
            first_line = record_file.readline().strip()
    except FileNotFoundError as exc:
        raise NotFoundError(f"Record file not found: {path}") from exc
    except UnicodeDecodeError as exc:
        raise InvalidArgumentError(f"Record file {path} is not UTF-8 text: {exc}") from exc

    if not first_line:
        raise InvalidArgumentError(f"Unable to read line from path: {path}")
    return first_line


def write_record(uri: str, path: Path | str) -> Path:
    """Store a URI as a record file, replacing any previous contents."""
    uri = uri.strip()
    if not uri:
        raise InvalidArgumentError("Spotify URI is required.")

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(uri + "\n", encoding="utf-8")
    return path
