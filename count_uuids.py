#!/usr/bin/env python3
"""
Count the distinct UUIDs in a dump written by export_events.py.

Partition keys look like "<uuid>:<year>"; the part before the first colon
is lowercased and collected. Prefixes that are not UUIDs are logged and
counted all the same.

Usage: python count_uuids.py [file] [--verbose]
"""
import argparse
import gzip
import logging
import sys
import uuid

import ijson

from dump_settings import DEFAULT_DUMP_FILE, setup_logging

logger = logging.getLogger(__name__)

_END = (None, None, None)


class MalformedDumpError(ValueError):
    """The dump does not have the shape export_events.py writes."""


def iter_partition_keys(stream):
    """
    Yield the first field value of every object in a JSON array, streaming.

    The first field of each object is taken to be the key; no other field
    is looked at.
    """
    events = ijson.parse(stream)
    _, event, _ = next(events, _END)
    if event != 'start_array':
        raise MalformedDumpError(f"Expected a JSON array, got {event}")
    for prefix, event, value in events:
        if event != 'start_map':
            continue
        _, event, name = next(events, _END)
        if event != 'map_key':
            raise MalformedDumpError(f"Expected a field name at {prefix}, got {event}")
        _, event, value = next(events, _END)
        if event != 'string':
            raise MalformedDumpError(f"Field {name!r} at {prefix} is {event}, not a string")
        yield value


def uuid_prefix(key):
    return key.split(':', 1)[0].lower()


def is_uuid(text):
    """True for the canonical 8-4-4-4-12 hex form only."""
    try:
        return str(uuid.UUID(text)) == text
    except ValueError:
        return False


def count_uuids(path):
    """Returns the set of lowercased key prefixes found in a gzip-compressed dump."""
    uuids = set()
    with gzip.open(path, 'rb') as stream:
        for key in iter_partition_keys(stream):
            prefix = uuid_prefix(key)
            if not is_uuid(prefix):
                logger.warning(f"No UUID: {prefix}")
            uuids.add(prefix)
    return uuids


def main(argv=None):
    parser = argparse.ArgumentParser(description="Count distinct partition key UUIDs in a DDSC dump")
    parser.add_argument("file", nargs="?", default=DEFAULT_DUMP_FILE,
                        help=f"Dump file, e.g. /data/ddsc.json.gz (default {DEFAULT_DUMP_FILE})")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args(argv)

    setup_logging(verbose=args.verbose)
    print(len(count_uuids(args.file)))
    return 0


def run():
    sys.exit(main())


if __name__ == "__main__":
    run()
