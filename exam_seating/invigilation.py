import logging
import re

logger = logging.getLogger(__name__)

TOKEN_SPLIT = re.compile(r"[^a-z0-9]+")


def tokens_from_string(text):
    """Lower-case the text and split it on every non-alphanumeric run."""
    if not text:
        return []
    return [token for token in TOKEN_SPLIT.split(str(text).lower()) if token]


def subject_tokens(course_codes, match_all=False):
    """
    Tokens of an exam's course list that count as its subject.

    Only the first token is used unless match_all is set.
    """
    tokens = tokens_from_string(course_codes)
    if match_all:
        return tokens
    return tokens[:1]


def teaches_any(invigilator_courses, exam_tokens):
    """True when the invigilator's courses contain one of the exam's subject tokens."""
    if not exam_tokens:
        return False
    return not set(exam_tokens).isdisjoint(tokens_from_string(invigilator_courses))


class RoomShortfall:
    def __init__(self, room, assigned, required):
        self.room = room
        self.assigned = assigned
        self.required = required

    def to_dict(self):
        return {
            "room_id": self.room.id,
            "room": self.room.room_name,
            "assigned": self.assigned,
            "required": self.required,
        }


class InvigilationPlan:
    def __init__(self, rooms, by_room, unfilled):
        self.rooms = rooms
        self.by_room = by_room  # room id -> [Invigilator]
        self.unfilled = unfilled

    def pairs(self):
        for room in self.rooms:
            for invigilator in self.by_room[room.id]:
                yield room, invigilator

    @property
    def total_assigned(self):
        return sum(len(assigned) for assigned in self.by_room.values())


def allocate_invigilators(rooms, invigilators, exam_tokens, load_counts, per_room=1):
    """
    Two-pass assignment of invigilators to rooms.

    Pass one skips anyone whose courses contain an exam subject token. Pass two
    fills the rooms still short without that check. Nobody serves two rooms of
    the same exam, and candidates with the fewest assignments in the same time
    slot are tried first (ties broken by id).
    """
    counts = dict(load_counts)
    taken = set()
    by_room = {room.id: [] for room in rooms}
    exam_tokens = set(exam_tokens)

    def candidates():
        return sorted(invigilators, key=lambda inv: (counts.get(inv.id, 0), inv.id))

    def fill(room, strict):
        assigned = by_room[room.id]
        for inv in candidates():
            if len(assigned) >= per_room:
                break
            if inv.id in taken:
                continue
            if strict and teaches_any(inv.courses, exam_tokens):
                logger.debug(
                    "Skipping invigilator %s for room %s: teaches %s",
                    inv.id, room.room_name, ",".join(sorted(exam_tokens)),
                )
                continue
            assigned.append(inv)
            taken.add(inv.id)
            counts[inv.id] = counts.get(inv.id, 0) + 1

    for room in rooms:
        fill(room, strict=True)

    for room in rooms:
        if len(by_room[room.id]) < per_room:
            fill(room, strict=False)

    unfilled = [
        RoomShortfall(room, len(by_room[room.id]), per_room)
        for room in rooms
        if len(by_room[room.id]) < per_room
    ]
    for shortfall in unfilled:
        logger.warning(
            "Room %s has %d of %d invigilators",
            shortfall.room.room_name, shortfall.assigned, shortfall.required,
        )

    return InvigilationPlan(list(rooms), by_room, unfilled)
