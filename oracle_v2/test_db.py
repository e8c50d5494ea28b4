"""
Tests for the LevelDB store and its in-memory stand-in.
"""
import shutil
import tempfile
import unittest
import pytest
from oracle_v2.memory_db import MemoryDB
from oracle_v2.state import StateOverlay


class StoreContract:
    """Behaviour shared by every store the overlay can commit to."""

    def make_db(self):
        raise NotImplementedError

    def test_put_get_delete(self):
        db = self.make_db()
        db.put(b'k', b'v')
        self.assertEqual(db.get(b'k'), b'v')
        self.assertTrue(db.exists(b'k'))
        db.delete(b'k')
        self.assertIsNone(db.get(b'k'))
        self.assertFalse(db.exists(b'k'))

    def test_batch_applies_on_exit(self):
        db = self.make_db()
        db.put(b'gone', b'1')
        with db.write_batch() as batch:
            batch.put(b'a', b'1')
            batch.delete(b'gone')
        self.assertEqual(db.get(b'a'), b'1')
        self.assertIsNone(db.get(b'gone'))

    def test_batch_discarded_on_error(self):
        db = self.make_db()
        with self.assertRaises(RuntimeError):
            with db.write_batch() as batch:
                batch.put(b'a', b'1')
                raise RuntimeError("abort")
        self.assertIsNone(db.get(b'a'))

    def test_overlay_commit(self):
        db = self.make_db()
        state = StateOverlay(db)
        state.put_obj(b'obj', {'value': str(2**100)})
        state.commit()
        self.assertEqual(StateOverlay(db).get_obj(b'obj'), {'value': str(2**100)})

    def test_closed(self):
        db = self.make_db()
        db.close()
        self.assertTrue(db.is_closed())
        with self.assertRaises(RuntimeError):
            db.get(b'k')


class TestMemoryDB(StoreContract, unittest.TestCase):
    def make_db(self):
        return MemoryDB()


class TestLevelDB(StoreContract, unittest.TestCase):
    def setUp(self):
        self.DB = pytest.importorskip("oracle_v2.db").DB
        self.temp_dir = tempfile.mkdtemp()
        self.dbs = []

    def tearDown(self):
        for db in self.dbs:
            db.close()
        shutil.rmtree(self.temp_dir)

    def make_db(self):
        db = self.DB(self.temp_dir)
        self.dbs.append(db)
        return db

    def test_persists_across_reopen(self):
        db = self.DB(self.temp_dir)
        db.put(b'k', b'v')
        db.close()

        with self.DB(self.temp_dir) as reopened:
            self.assertEqual(reopened.get(b'k'), b'v')


if __name__ == '__main__':
    unittest.main()
