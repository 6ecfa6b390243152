"""Tests for per-user storage and the record row formats."""

import pytest

from common.types import FileRecord, LogEntry
from server.user_storage import UserStorage, is_valid_filename, is_valid_username


@pytest.fixture
def storage(tmp_path):
    return UserStorage(tmp_path / 'data')


class TestNames:
    @pytest.mark.parametrize('name', ['hello.txt', 'report 2024.pdf', 'a~b', 'x'])
    def test_valid_filenames(self, name):
        assert is_valid_filename(name)

    @pytest.mark.parametrize('name', [
        '', '../etc/passwd', 'a/b', 'a\\b', '..', '.hidden',
        'metadata.txt', 'messages.txt', 'log.txt', ' padded',
    ])
    def test_invalid_filenames(self, name):
        assert not is_valid_filename(name)

    @pytest.mark.parametrize('name', [
        '', 'a|b', 'a,b', 'a:b', '../x', 'a/b', '.x',
        'ALL', 'credentials.txt', 'credentials.txt.tmp',
    ])
    def test_invalid_usernames(self, name):
        assert not is_valid_username(name)

    def test_valid_username(self):
        assert is_valid_username('Alice')


class TestRecords:
    def test_file_record_row(self):
        record = FileRecord('a.txt', False, 'bob', 'for bob')
        assert record.to_row() == 'a.txt|private|bob|for bob'
        assert FileRecord.from_row('a.txt|private|bob|for bob') == record

    def test_file_record_short_row(self):
        record = FileRecord.from_row('a.txt|public')
        assert record.is_public
        assert record.requester == ''
        assert FileRecord.from_row('') is None

    def test_description_may_contain_separator(self):
        assert FileRecord.from_row('a|public||x|y').description == 'x|y'

    def test_access_rules(self):
        assert FileRecord('a', True).is_accessible_by('anyone')
        assert FileRecord('a', False, 'bob').is_accessible_by('bob')
        assert not FileRecord('a', False, 'bob').is_accessible_by('carol')
        assert not FileRecord('a', False).is_accessible_by('')

    def test_log_entry(self):
        entry = LogEntry.now('a.txt', 'upload', 'success')
        assert len(entry.timestamp) == len('2024-01-01 12:00:00')
        assert LogEntry.from_row(entry.to_row()) == entry
        assert LogEntry.from_row('bad|row') is None


class TestContent:
    def test_write_and_stream(self, storage):
        storage.write_file('alice', 'a.bin', [b'abc', b'defg'])
        assert storage.file_size('alice', 'a.bin') == 7
        assert list(storage.read_file_streaming('alice', 'a.bin', 3)) == [b'abc', b'def', b'g']

    def test_write_leaves_no_temp_files(self, storage):
        storage.write_file('alice', 'a.bin', [b'x'])
        assert sorted(p.name for p in storage.user_dir('alice').iterdir()) == ['a.bin']

    def test_empty_file(self, storage):
        storage.write_file('alice', 'empty', [])
        assert storage.file_size('alice', 'empty') == 0
        assert list(storage.read_file_streaming('alice', 'empty', 10)) == []

    def test_missing_file(self, storage):
        assert storage.file_size('alice', 'nope') is None
        assert not storage.file_exists('alice', 'nope')
        assert not storage.delete_file('alice', 'nope')

    def test_delete(self, storage):
        storage.write_file('alice', 'a.bin', [b'x'])
        assert storage.delete_file('alice', 'a.bin')
        assert not storage.file_exists('alice', 'a.bin')


class TestMetadata:
    def test_upsert_replaces_row(self, storage):
        storage.upsert_record('alice', FileRecord('a.txt', True))
        storage.upsert_record('alice', FileRecord('b.txt', False))
        storage.upsert_record('alice', FileRecord('a.txt', False, 'bob', 'again'))

        assert storage.list_metadata_rows('alice') == ['b.txt|private||', 'a.txt|private|bob|again']
        assert storage.get_record('alice', 'a.txt').requester == 'bob'

    def test_remove_record(self, storage):
        storage.upsert_record('alice', FileRecord('a.txt', True))
        assert storage.remove_record('alice', 'a.txt')
        assert not storage.remove_record('alice', 'a.txt')
        assert storage.list_records('alice') == []

    def test_no_metadata_file(self, storage):
        assert storage.list_metadata_rows('ghost') == []
        assert storage.get_record('ghost', 'a') is None


class TestMessagesAndLog:
    def test_append_and_read_messages(self, storage):
        storage.append_message('alice', 'one')
        storage.append_message('alice', 'two')
        assert storage.read_messages('alice') == ['one', 'two']
        assert storage.has_messages_file('alice')

    def test_delete_first_matching_message(self, storage):
        for message in ('dup', 'other', 'dup'):
            storage.append_message('alice', message)
        assert storage.delete_first_message('alice', '  dup ')
        assert storage.read_messages('alice') == ['other', 'dup']

    def test_delete_absent_message_leaves_file(self, storage):
        storage.append_message('alice', 'one')
        assert not storage.delete_first_message('alice', 'two')
        assert storage.read_messages('alice') == ['one']

    def test_log_rows(self, storage):
        storage.append_log('alice', LogEntry('a', '2024-01-01 00:00:00', 'upload', 'success'))
        assert storage.read_log_rows('alice') == ['a|2024-01-01 00:00:00|upload|success']
        assert storage.read_log_rows('bob') == []
