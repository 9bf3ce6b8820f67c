#!/usr/bin/env python3
"""
Unit tests for genesis_store.py
"""

import json
import os
import sys
import tempfile
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'tools'))
import genesis_store
from genesis_store import GenesisFormatError, GenesisNotFoundError, GenesisWriteError


def seed_document():
    return {
        'initial_timestamp': '2019-01-01T00:00:00',
        'initial_parameters': {'block_interval': 3},
        'initial_accounts': [{'name': 'old', 'owner_key': 'K', 'active_key': 'K', 'is_lifetime_member': False}],
        'initial_balances': [{'owner': 'A', 'asset_symbol': 'CORE', 'amount': 1}],
        'initial_chain_id': 'aa' * 32,
    }


class TestLoad(unittest.TestCase):
    def test_missing_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, 'missing.json')
            with self.assertRaises(GenesisNotFoundError) as ctx:
                genesis_store.load(path)
            self.assertIn('missing.json', str(ctx.exception))

    def test_invalid_json(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, 'genesis.json')
            with open(path, 'w') as f:
                f.write('{not json')
            with self.assertRaises(GenesisFormatError):
                genesis_store.load(path)

    def test_not_an_object(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, 'genesis.json')
            with open(path, 'w') as f:
                json.dump([1, 2, 3], f)
            with self.assertRaises(GenesisFormatError):
                genesis_store.load(path)

    def test_not_utf8(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, 'genesis.json')
            with open(path, 'wb') as f:
                f.write(b'{"initial_accounts": "\xff\xfe"}')
            with self.assertRaises(GenesisFormatError):
                genesis_store.load(path)

    def test_directory(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(GenesisFormatError):
                genesis_store.load(tmpdir)

    def test_load(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, 'genesis.json')
            with open(path, 'w') as f:
                json.dump(seed_document(), f)
            self.assertEqual(genesis_store.load(path), seed_document())


class TestPrepareForRebuild(unittest.TestCase):
    def test_reset_clears_lists(self):
        document = seed_document()
        accounts = document['initial_accounts']
        genesis_store.prepare_for_rebuild(document, append=False)

        self.assertEqual(document['initial_accounts'], [])
        self.assertEqual(document['initial_balances'], [])
        # Cleared in place
        self.assertIs(document['initial_accounts'], accounts)

    def test_reset_keeps_parameters(self):
        document = genesis_store.prepare_for_rebuild(seed_document(), append=False)
        original = seed_document()
        for key in ('initial_timestamp', 'initial_parameters', 'initial_chain_id'):
            self.assertEqual(document[key], original[key])

    def test_append_keeps_lists(self):
        document = genesis_store.prepare_for_rebuild(seed_document(), append=True)
        self.assertEqual(document, seed_document())

    def test_missing_lists_created(self):
        for append in (True, False):
            document = genesis_store.prepare_for_rebuild({'initial_chain_id': 'x'}, append=append)
            self.assertEqual(document['initial_accounts'], [])
            self.assertEqual(document['initial_balances'], [])

    def test_non_list_rejected(self):
        with self.assertRaises(GenesisFormatError):
            genesis_store.prepare_for_rebuild({'initial_accounts': None}, append=True)


class TestSave(unittest.TestCase):
    def test_save_overwrites(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, 'out.json')
            with open(path, 'w') as f:
                f.write('stale content that is longer than the new document' * 10)

            genesis_store.save({'initial_accounts': []}, path)

            with open(path, 'r') as f:
                self.assertEqual(json.load(f), {'initial_accounts': []})

    def test_save_to_directory_path(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(GenesisWriteError):
                genesis_store.save({}, tmpdir)

    def test_save_under_a_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            blocker = os.path.join(tmpdir, 'blocker')
            with open(blocker, 'w') as f:
                f.write('x')
            with self.assertRaises(GenesisWriteError):
                genesis_store.save({}, os.path.join(blocker, 'out.json'))

    def test_save_preserves_key_order(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = os.path.join(tmpdir, 'nested', 'out.json')
            genesis_store.save(seed_document(), path)

            with open(path, 'r') as f:
                loaded = json.load(f)
            self.assertEqual(list(loaded), list(seed_document()))


if __name__ == '__main__':
    unittest.main()
