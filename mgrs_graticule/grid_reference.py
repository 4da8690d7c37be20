"""
Grid Reference Encoder / Parser

ARCHITECTURAL OVERVIEW:
=======================
Responsibility: Build MGRS grid references from projected coordinates and
parse them back into structured parts. This module is the single place that
knows the textual layout "ZZB" + "CR" + digits; callers never slice ids.

Key Functions:
- encode_grid_reference(): zone/band + UTM coordinate -> "05QKB12"
- square_letters(): 100 km column/row letter pair (WGS84 "AA" lettering)
- parse_grid_reference(): "05QKB12" -> GridReference(zone=5, band="Q", ...)
- band_letter_for_latitude(): 8-degree latitude band letter

Lettering:
- Columns cycle through three sets of eight letters, chosen by (zone-1) % 3,
  starting at easting 100 km.
- Rows cycle through twenty letters (I and O omitted) every 2000 km of
  northing; even zones are offset by five letters.

For Navigation: Use VS Code outline (Ctrl+Shift+O)
"""

import math
import re
from typing import NamedTuple, Optional

from mgrs_graticule.models import EncodingError, Hemisphere

COLUMN_LETTER_SETS = ("ABCDEFGH", "JKLMNPQR", "STUVWXYZ")
ROW_LETTERS = "ABCDEFGHJKLMNPQRSTUV"
BAND_LETTERS = "CDEFGHJKLMNPQRSTUVWX"

SQUARE_SIZE_M = 100000
MAX_NORTHING_M = 10000000
MAX_DIGITS = 5

_REFERENCE_PATTERN = re.compile(
    r"^(?P<zone>\d{1,2})(?P<band>[C-HJ-NP-X])"
    r"(?:(?P<column>[A-HJ-NP-Z])(?P<row>[A-HJ-NP-V])(?P<digits>\d*))?$"
)


# ═══════════════════════════════════════════════════════════════════════════
# 🏷️ STRUCTURED REFERENCE
# ═══════════════════════════════════════════════════════════════════════════


class GridReference(NamedTuple):
    """Parsed grid reference.

    square and the digit strings are empty for a bare zone name ("05Q").
    """

    zone: int
    band: str
    square: str = ""
    easting_digits: str = ""
    northing_digits: str = ""

    @property
    def gzd(self) -> str:
        """Grid zone designation, e.g. "05Q"."""
        return f"{self.zone:02d}{self.band}"

    @property
    def hemisphere(self) -> Hemisphere:
        return Hemisphere.from_band(self.band)

    @property
    def precision_m(self) -> Optional[int]:
        """Cell size the reference denotes; None for a bare zone."""
        if not self.square:
            return None
        return 10 ** (MAX_DIGITS - len(self.easting_digits))

    @property
    def square_id(self) -> str:
        """The 100 km square id ("05QKB"), empty for a bare zone."""
        return f"{self.gzd}{self.square}" if self.square else ""

    def __str__(self) -> str:
        return f"{self.gzd}{self.square}{self.easting_digits}{self.northing_digits}"


def parse_grid_reference(text: str) -> GridReference:
    """
    Parse a zone name, square id or cell id.

    Args:
        text: e.g. "5Q", "05Q", "05QKB", "05QKB12"

    Raises:
        EncodingError: The text is not a well formed reference.
    """
    cleaned = text.strip().upper().replace(" ", "")
    match = _REFERENCE_PATTERN.match(cleaned)
    if match is None:
        raise EncodingError(f"Malformed grid reference: {text!r}")

    zone = int(match.group("zone"))
    if not 1 <= zone <= 60:
        raise EncodingError(f"Zone out of range in {text!r}")

    digits = match.group("digits") or ""
    if len(digits) % 2 or len(digits) > 2 * MAX_DIGITS:
        raise EncodingError(f"Unbalanced or too many digits in {text!r}")
    half = len(digits) // 2

    square = ""
    if match.group("column"):
        square = match.group("column") + match.group("row")
    return GridReference(
        zone=zone,
        band=match.group("band"),
        square=square,
        easting_digits=digits[:half],
        northing_digits=digits[half:],
    )


# ═══════════════════════════════════════════════════════════════════════════
# 🔤 ENCODING
# ═══════════════════════════════════════════════════════════════════════════


def band_letter_for_latitude(lat: float) -> str:
    """Latitude band letter; band X absorbs 80..84 N."""
    if not -80.0 <= lat <= 84.0:
        raise EncodingError(f"Latitude outside MGRS coverage: {lat}")
    index = min(int((lat + 80.0) // 8.0), len(BAND_LETTERS) - 1)
    return BAND_LETTERS[index]


def precision_digits(cell_size_m: int) -> int:
    """Digits per axis for a power-of-ten cell size (100 km -> 0, 10 km -> 1)."""
    if cell_size_m <= 0 or cell_size_m > SQUARE_SIZE_M:
        raise EncodingError(f"Cell size out of range: {cell_size_m}")
    exponent = math.log10(cell_size_m)
    if abs(exponent - round(exponent)) > 1e-9:
        raise EncodingError(f"Cell size is not a power of ten: {cell_size_m}")
    return MAX_DIGITS - int(round(exponent))


def square_letters(zone: int, easting: float, northing: float) -> str:
    """
    Column and row letters of the 100 km square containing a UTM coordinate.

    Raises:
        EncodingError: Zone, easting or northing outside the lettered range.
    """
    if not 1 <= zone <= 60:
        raise EncodingError(f"Zone out of range: {zone}")
    if not (math.isfinite(easting) and math.isfinite(northing)):
        raise EncodingError(f"Non-finite coordinate: ({easting}, {northing})")
    if not 0 <= northing < MAX_NORTHING_M:
        raise EncodingError(f"Northing out of range: {northing}")

    column_index = int(easting // SQUARE_SIZE_M) - 1
    column_set = COLUMN_LETTER_SETS[(zone - 1) % 3]
    if not 0 <= column_index < len(column_set):
        raise EncodingError(f"Easting out of range: {easting}")

    row_index = int(northing // SQUARE_SIZE_M) % len(ROW_LETTERS)
    if zone % 2 == 0:
        row_index = (row_index + 5) % len(ROW_LETTERS)

    return column_set[column_index] + ROW_LETTERS[row_index]


def encode_grid_reference(
    zone: int, band: str, easting: float, northing: float, cell_size_m: int
) -> str:
    """
    Grid reference of the cell containing (easting, northing).

    Args:
        zone: Zone the coordinate is projected in
        band: Latitude band letter used in the prefix
        easting, northing: UTM coordinate (typically a cell center)
        cell_size_m: Power-of-ten cell size selecting the digit count

    Returns:
        e.g. "05QKB" for 100 km, "05QKB12" for 10 km

    Raises:
        EncodingError: Any part is out of range.
    """
    band = band.upper()
    if len(band) != 1 or band not in BAND_LETTERS:
        raise EncodingError(f"Invalid band letter: {band!r}")
    digits = precision_digits(cell_size_m)
    letters = square_letters(zone, easting, northing)

    reference = f"{zone:02d}{band}{letters}"
    if digits:
        e_digits = int((easting % SQUARE_SIZE_M) // cell_size_m)
        n_digits = int((northing % SQUARE_SIZE_M) // cell_size_m)
        reference += f"{e_digits:0{digits}d}{n_digits:0{digits}d}"
    return reference
