import argparse
import sys

from exam_seating.config import get_settings
from exam_seating.database import SessionLocal, engine
from exam_seating.exceptions import AllocationError
from exam_seating.invigilation_service import assign_invigilators
from exam_seating.logging_config import LOGGING_CONFIG, setup_logging
from exam_seating.schema import build_config, init_db
from exam_seating.seating_service import generate_seating
from exam_seating.student_import import import_students


def print_seating(result):
    print(f"\n--- Seating for {result['exam_id']} ---")
    print(f"Seated: {result['total_assigned']} | Overflow: {result['overflow_count']}")
    for s in result["overflow"]:
        print(f"  not seated: {s['name']} ({s['course']})")


def print_invigilation(result):
    print(f"\n--- Invigilation for {result['exam_id']} ---")
    for a in result["assignments"]:
        print(f"{a['invigilator']} -> Room {a['room']}")
    for r in result["unfilled_rooms"]:
        print(f"  room {r['room']} short: {r['assigned']}/{r['required']}")


def build_parser():
    parser = argparse.ArgumentParser(prog="exam-seating")
    commands = parser.add_subparsers(dest="command", required=True)

    seat = commands.add_parser("seat", help="generate seating for an exam")
    seat.add_argument("exam_id")

    invigilate = commands.add_parser("invigilate", help="assign invigilators for an exam")
    invigilate.add_argument("exam_id")
    invigilate.add_argument("--per-room", type=int, default=None)

    students = commands.add_parser("import-students", help="load students from .xlsx or .csv")
    students.add_argument("file")

    serve = commands.add_parser("serve", help="run the HTTP API")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    settings = get_settings()

    if args.command == "serve":
        import uvicorn

        uvicorn.run("exam_seating.main_api:app", host=args.host, port=args.port, log_config=LOGGING_CONFIG)
        return 0

    setup_logging(settings.LOG_LEVEL)
    config = build_config(engine, settings)
    init_db(engine, config)

    db = SessionLocal()
    try:
        if args.command == "seat":
            print_seating(generate_seating(db, args.exam_id))
        elif args.command == "invigilate":
            print_invigilation(assign_invigilators(db, args.exam_id, config, per_room=args.per_room))
        elif args.command == "import-students":
            result = import_students(db, args.file)
            print(f"Inserted {result['inserted']}, skipped {result['skipped_duplicates']}")
    except AllocationError as e:
        print(f"error: {e.message}", file=sys.stderr)
        return 1
    finally:
        db.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
