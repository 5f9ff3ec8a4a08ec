#!/usr/bin/env python3
"""
One-off script for dumping DDSC's Cassandra events column family to
gzip-compressed JSON (it will be thrown away after the migration).

The JSON looks something like this:

[{"key":"97f16f51-c916-41ad-ae88-4ee8b1626b44:2014","columns":[
["2014-01-03T02:59:17.000000Z_flag","-1",1388718646815724],
["2014-01-03T02:59:17.000000Z_value","-2.8927",1388718646815724],...]},...]

Our version of Cassandra has no automatic paging in CQL, so partitions are
walked in token order by hand and the columns of each partition are read
page by page, continuing after the last column1 seen.

Usage: python export_events.py [file] [--config dump_settings.yaml] [--verbose]
"""
import argparse
import gzip
import json
import logging
import sys

from cassandra.cluster import Cluster
from tqdm import tqdm

from dump_settings import (DEFAULT_CONFIG_FILE, DEFAULT_DUMP_FILE, DEFAULT_ENCODING,
                           load_settings, setup_logging)

logger = logging.getLogger(__name__)


class NotFirstKeyError(Exception):
    """The key we started from has another key with a lower token."""

    def __init__(self, key):
        super().__init__(f"{key!r} is not the first partition key")
        self.key = key


# --- Queries ---
class EventsTable:
    """Prepared statements for walking a COMPACT STORAGE (key, column1, value) table."""

    def __init__(self, session, column_family, page_size):
        self.session = session
        self.column_family = column_family
        self.page_size = page_size

        cf = column_family
        self._first_key = session.prepare(f"SELECT key FROM {cf} LIMIT 1")
        self._key_before = session.prepare(
            f"SELECT key FROM {cf} WHERE token(key) < token(?) LIMIT 1")
        self._key_after = session.prepare(
            f"SELECT key FROM {cf} WHERE token(key) > token(?) LIMIT 1")
        self._first_page = session.prepare(
            f"SELECT column1, value, writetime(value) FROM {cf} "
            f"WHERE key = ? LIMIT {page_size}")
        self._next_page = session.prepare(
            f"SELECT column1, value, writetime(value) FROM {cf} "
            f"WHERE key = ? AND column1 > ? LIMIT {page_size}")

    def _one_key(self, statement, params=None):
        row = self.session.execute(statement, params).one()
        return None if row is None else row[0]

    def first_key(self):
        return self._one_key(self._first_key)

    def key_before(self, key):
        return self._one_key(self._key_before, [key])

    def key_after(self, key):
        return self._one_key(self._key_after, [key])

    def column_page(self, key, after=None):
        """Return up to page_size (column1, value, writetime) tuples in column1 order."""
        if after is None:
            rows = self.session.execute(self._first_page, [key])
        else:
            rows = self.session.execute(self._next_page, [key, after])
        return [(row[0], row[1], row[2]) for row in rows]


# --- Cursors ---
class PartitionCursor:
    """
    Walks partition keys in token order.

    The first call to next() looks up a provisional first key and checks
    that no key has a lower token; the walk relies on starting there.
    """

    def __init__(self, table):
        self.table = table
        self.key = None
        self.started = False
        self.done = False

    def next(self):
        if self.done:
            return None
        if not self.started:
            self.started = True
            key = self.table.first_key()
            if key is not None and self.table.key_before(key) is not None:
                self.done = True
                raise NotFirstKeyError(key)
        else:
            key = self.table.key_after(self.key)
        if key is None:
            self.done = True
        else:
            self.key = key
        return key

    def __iter__(self):
        while True:
            key = self.next()
            if key is None:
                return
            yield key


class ColumnPager:
    """
    Pages through the columns of one partition.

    A page shorter than page_size means the partition is exhausted; a full
    page always costs one more query.
    """

    def __init__(self, table, key, page_size=None):
        self.table = table
        self.key = key
        self.page_size = page_size or table.page_size
        self.last_column = None
        self.exhausted = False
        self.pages = 0

    def next(self):
        if self.exhausted:
            return []
        page = self.table.column_page(self.key, after=self.last_column)
        self.pages += 1
        if len(page) < self.page_size:
            self.exhausted = True
        if page:
            self.last_column = page[-1][0]
        return page

    def __iter__(self):
        while not self.exhausted:
            yield from self.next()


# --- JSON output ---
def _text(raw, encoding):
    if isinstance(raw, str):
        return raw
    return bytes(raw).decode(encoding, errors='replace')


def _writetime(writetime):
    # writetime(value) is null when value is null
    return 0 if writetime is None else int(writetime)


def _dumps(obj):
    return json.dumps(obj, ensure_ascii=False, separators=(',', ':'))


def write_partition(out, key, columns, encoding=DEFAULT_ENCODING):
    """Stream one partition object; columns may be any iterable of raw triples."""
    out.write('{"key":' + _dumps(_text(key, encoding)) + ',"columns":[')
    first = True
    for column1, value, writetime in columns:
        if not first:
            out.write(',')
        out.write(_dumps([_text(column1, encoding), _text(value, encoding), _writetime(writetime)]))
        first = False
    out.write(']}')


def dump_column_family(table, path, encoding=DEFAULT_ENCODING, progress=False):
    """
    Write every partition of the table to a gzip-compressed JSON array.

    The file is always UTF-8; encoding only applies to the stored blobs.
    Returns the number of partitions written. Nothing is written when the
    table is empty. NotFirstKeyError is raised before the file is opened.
    """
    cursor = PartitionCursor(table)
    key = cursor.next()
    if key is None:
        logger.info("Nothing to dump.")
        return 0

    count = 0
    with gzip.open(path, 'wt', encoding='utf-8') as out, \
            tqdm(desc=f"Dumping {table.column_family}", unit="partition",
                 disable=not progress) as pbar:
        out.write('[')
        while key is not None:
            logger.debug(f"Fetching data for partition key #{count}: {key!r}")
            if count:
                out.write(',')
            write_partition(out, key, ColumnPager(table, key), encoding)
            count += 1
            pbar.update(1)
            key = cursor.next()
        out.write(']')

    logger.info(f"Dumped {count} partitions of {table.column_family} to {path}")
    return count


# --- Cassandra connection ---
def connect(settings):
    """Returns (cluster, session) connected to the settings' keyspace."""
    cluster = Cluster(
        contact_points=settings.nodes,
        port=settings.port,
        connect_timeout=settings.connect_timeout,
        control_connection_timeout=settings.connect_timeout
    )
    logger.info(f"Connecting to Cassandra ({', '.join(settings.nodes)}:{settings.port})...")
    try:
        session = cluster.connect(settings.keyspace)
    except Exception:
        cluster.shutdown()
        raise
    session.default_timeout = settings.request_timeout
    session.default_consistency_level = settings.consistency_level
    logger.info("Connection to Cassandra successful")
    return cluster, session


def main(argv=None):
    parser = argparse.ArgumentParser(description="Dump a Cassandra column family to gzip-compressed JSON")
    parser.add_argument("file", nargs="?", default=DEFAULT_DUMP_FILE,
                        help=f"Output file, e.g. /data/ddsc.json.gz (default {DEFAULT_DUMP_FILE})")
    parser.add_argument("--config", default=DEFAULT_CONFIG_FILE,
                        help=f"Settings YAML file (default {DEFAULT_CONFIG_FILE})")
    parser.add_argument("--verbose", action="store_true", help="Log every partition key")
    args = parser.parse_args(argv)

    settings = load_settings(args.config)
    setup_logging(settings.log_file, args.verbose)

    cluster, session = connect(settings)
    try:
        table = EventsTable(session, settings.column_family, settings.page_size)
        dump_column_family(table, args.file, settings.encoding, settings.progress)
    except NotFirstKeyError as e:
        logger.error(f"{_text(e.key, settings.encoding)} is not the first partition key!?")
        return 1
    finally:
        cluster.shutdown()
    return 0


def run():
    sys.exit(main())


if __name__ == "__main__":
    run()
