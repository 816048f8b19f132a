import argparse
import json
import logging
import sys

from timetable_engine.config import get_settings
from timetable_engine.config_loader import ConfigLoader
from timetable_engine.exceptions import ConfigurationError, InputError
from timetable_engine.export import generation_record, timetable_entry_rows
from timetable_engine.scheduleGenerator import generate
from timetable_engine.validation import find_violations, validate_snapshot

logger = logging.getLogger('timetable_engine')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='timetable-engine',
        description='Conflict-free timetable generation for one academic term',
    )
    parser.add_argument('-v', '--verbose', action='store_true', help='Log every search level')
    commands = parser.add_subparsers(dest='command', required=True)

    gen = commands.add_parser('generate', help='Generate (or repair) a timetable and print it as JSON')
    gen.add_argument('snapshot', help='Term snapshot JSON file')
    gen.add_argument('--previous', default=None,
                     help='Timetable to repair: a dumped timetable, a generation record or entry rows')
    gen.add_argument('--budget', type=int, default=None,
                     help='Exploration budget in backtrack steps (default from settings)')
    gen.add_argument('--weights', default=None, help='Soft constraint weights JSON file')
    gen.add_argument('--entries', action='store_true',
                     help='Print timetable_entry rows instead of the generation record')

    check = commands.add_parser('check', help='List hard constraint violations of a timetable')
    check.add_argument('snapshot', help='Term snapshot JSON file')
    check.add_argument('timetable', help='Timetable JSON file')
    return parser


def run_generate(args) -> int:
    snapshot = ConfigLoader.load_snapshot(args.snapshot)
    previous = ConfigLoader.load_timetable(args.previous, term_id=snapshot.term_id) if args.previous else None
    weights = ConfigLoader.load_weights(args.weights) if args.weights else None

    timetable = generate(snapshot, previous=previous, budget=args.budget, weights=weights)

    output = timetable_entry_rows(timetable) if args.entries else generation_record(timetable)
    print(json.dumps(output, indent=2))
    return 0


def run_check(args) -> int:
    snapshot = ConfigLoader.load_snapshot(args.snapshot)
    validate_snapshot(snapshot)
    timetable = ConfigLoader.load_timetable(args.timetable, term_id=snapshot.term_id)

    violations = find_violations(timetable, snapshot)
    print(json.dumps(
        [{'assignment': a.model_dump(mode='json'), 'violation': v.value} for a, v in violations],
        indent=2,
    ))
    return 1 if violations else 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else settings.log_level,
        format='%(asctime)s - %(levelname)s - %(name)s - %(message)s',
        stream=sys.stderr,
    )

    try:
        if args.command == 'generate':
            return run_generate(args)
        return run_check(args)
    except InputError as exc:
        logger.error('Invalid input: %s', exc.message)
        print(json.dumps({'error': exc.message, 'details': exc.details}, indent=2, default=str), file=sys.stderr)
        return 2
    except ConfigurationError as exc:
        logger.error('Invalid configuration: %s', exc.message)
        return 1


if __name__ == '__main__':
    sys.exit(main())
