import re

from exam_seating.models import Seat

# r9c5, R09C05, r9_c5, r9-c5
SEAT_ID_PATTERN = re.compile(r"r[\s_-]*0*(\d+)[\s_-]*c?[\s_-]*0*(\d+)", re.IGNORECASE)


def seat_id_for(row, col):
    return f"r{row}c{col}"


def build_seats(rows, cols):
    """Return every seat of a rows x cols grid in row-major order."""
    return [
        Seat(row=row, col=col, seat_id=seat_id_for(row, col))
        for row in range(1, (rows or 0) + 1)
        for col in range(1, (cols or 0) + 1)
    ]


def are_adjacent(a, b):
    # shares an edge; diagonals do not count
    return abs(a.row - b.row) + abs(a.col - b.col) == 1


def parse_seat_id(sid):
    """
    Extract (row, col) from a stored seat id.

    Accepts r9c5, R09C05, r9_c5, r9-c5 and similar. Returns None when the
    string does not hold a row number and a column number.
    """
    if not sid:
        return None

    match = SEAT_ID_PATTERN.search(str(sid))
    if not match:
        return None

    return int(match.group(1)), int(match.group(2))
