"""Reading inputs and writing outputs as whole files."""

import logging
import os
import tempfile
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional, Sequence, Union

from .delimited import DELIMITER_NAMES, format_delimited, parse_delimited
from .errors import InputReadError, MissingInputError
from .models import CardRecord, ParsedTable

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def choose_input(
    candidates: Iterable[PathLike],
    exists_fn: Callable[[str], bool] = os.path.exists,
) -> Optional[str]:
    """Return the first candidate that exists, or None."""
    for candidate in candidates:
        if exists_fn(str(candidate)):
            return str(candidate)
    return None


def require_inputs(
    paths: Iterable[PathLike],
    exists_fn: Callable[[str], bool] = os.path.exists,
) -> None:
    """Raise MissingInputError naming every path that does not exist."""
    missing = [str(p) for p in paths if not exists_fn(str(p))]
    if missing:
        raise MissingInputError(missing)


def read_text(path: PathLike) -> str:
    """Read a UTF-8 file, dropping a leading byte order mark."""
    try:
        with open(path, encoding="utf-8-sig", errors="replace") as f:
            return f.read()
    except OSError as e:
        raise InputReadError(str(path), e.strerror or str(e)) from e


def read_table(path: PathLike, delimiter: Optional[str] = None) -> ParsedTable:
    """Read and parse one delimited file."""
    table = parse_delimited(read_text(path), delimiter)
    logger.info(
        f"Read {len(table.rows)} rows from {path} "
        f"(delimiter: {DELIMITER_NAMES.get(table.delimiter, repr(table.delimiter))})"
    )
    if table.is_empty:
        logger.warning(f"No data rows found in {path}")
    return table


def render_records(
    records: Sequence[CardRecord],
    headers: Sequence[str],
    delimiter: str = ",",
    supplied_only: bool = True,
) -> str:
    """Render records under ``headers``.

    With ``supplied_only`` a record only fills the columns its source (or a
    merge) supplied, so pass-through rows stay as they were read.
    """
    rows = [record.supplied_row() if supplied_only else record.to_row() for record in records]
    return format_delimited(headers, rows, delimiter)


def write_outputs(outputs: Dict[PathLike, str]) -> None:
    """Write every output, or none of them.

    Contents are first written to temporary siblings; targets are only
    replaced once all temporary files exist, so a failure part way leaves the
    previous outputs untouched.
    """
    staged = []
    try:
        for target, content in outputs.items():
            target_path = Path(target)
            target_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{target_path.name}.", suffix=".tmp", dir=target_path.parent
            )
            staged.append((tmp_name, target_path))
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                f.write(content)
    except OSError:
        for tmp_name, _ in staged:
            if os.path.exists(tmp_name):
                os.remove(tmp_name)
        raise

    for tmp_name, target_path in staged:
        os.replace(tmp_name, target_path)
        logger.info(f"Wrote: {target_path}")
