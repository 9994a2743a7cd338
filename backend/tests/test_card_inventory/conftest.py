"""Test fixtures for card_inventory tests."""

from pathlib import Path
from typing import Callable

import pytest

from card_inventory.headers import canonicalize_headers
from card_inventory.models import CardRecord
from card_inventory.normalize import record_from_row


@pytest.fixture
def old_inventory_csv() -> str:
    """Authoritative inventory with research columns."""
    return """Card ID,Player,Set,Card #,Year,Value,Notes
A1,Lionel Messi,Topps Chrome,7,2024,10.00,top loader
A2,Erling Haaland,Panini Prizm,221,2023,,
A3,Unknown Player,Obscure Set,99,2001,,
"""


@pytest.fixture
def new_inventory_csv() -> str:
    """Normalized reference export in the canonical schema."""
    return """id,player,set,card_number,year,team,league,value,image
c_x1,Lionel Messi,Topps Chrome,7,2024,Inter Miami,MLS,12.50,messi.jpg
c_x2,Erling Haaland,Panini Prizm,221,2023,Manchester City,EPL,,haaland.jpg
c_x3,Kylian Mbappe,Topps Chrome,1,2024,Real Madrid,La Liga,,mbappe.jpg
"""


@pytest.fixture
def bulk_export_csv() -> str:
    """Marketplace bulk export where identity only lives in the title."""
    return """Title,Custom label (SKU),Start price,Quantity,Item photo URL
2024 Topps Chrome #7 Lionel Messi,,15.00,1,front.jpg
2023-24 Panini Prizm #221 Haaland,,20.00,1,a.jpg | b.jpg
2023-24 Panini Prizm #221 Haaland,,22.00,1,c.jpg
"""


@pytest.fixture
def raw_tsv_export() -> str:
    """Tab separated raw export with alias headers and messy cells."""
    return (
        "Player Name\tSet\tCard #\tSeason\tQty\tPrice\tImages\tRC\n"
        "José Ramírez\tTopps Chrome\t#15\t2022-23\t2\t$4.50\ta.jpg | b.jpg\tY\n"
        "Lionel Messi\tTopps\t7\t2024\t\tabc\t\t\n"
    )


@pytest.fixture
def duplicates_csv() -> str:
    """Two literal copies of one card and a graded copy of it."""
    return """player,set,card_number,year,quantity,grade,notes
Lionel Messi,Topps,7,2024,1,,binder
Lionel Messi,Topps,7,2024,2,,box
Lionel Messi,Topps,7,2024,1,PSA 10,slab
"""


@pytest.fixture
def make_record() -> Callable[..., CardRecord]:
    """Build a canonical record from keyword cells, as if read from a file."""
    def _make(position: int = 1, **cells) -> CardRecord:
        row = {name: str(value) for name, value in cells.items()}
        return record_from_row(row, canonicalize_headers(row), position)
    return _make


@pytest.fixture
def write_file(tmp_path: Path) -> Callable[[str, str], Path]:
    """Write text to a file under tmp_path and return its path."""
    def _write(name: str, content: str) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path
    return _write
