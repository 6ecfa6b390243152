"""Tests for the CLI command parser."""

import pytest

from cli.models import (
    ClientsCommand,
    DeleteFileCommand,
    DeleteMessageCommand,
    DownloadCommand,
    FilesCommand,
    HistoryCommand,
    LoginCommand,
    LogoutCommand,
    MessagesCommand,
    PublicFilesCommand,
    RecoverCommand,
    RequestCommand,
    SignupCommand,
    UploadCommand,
)
from cli.parser import ParseError, parse_command


def test_parse_signup():
    assert parse_command("signup alice pw 'my first pet'") == SignupCommand('alice', 'pw', 'my first pet')


def test_parse_login():
    assert parse_command("login alice pw") == LoginCommand('alice', 'pw')


def test_parse_recover():
    assert parse_command("recover alice blue newpw") == RecoverCommand('alice', 'blue', 'newpw')


@pytest.mark.parametrize('line, expected', [
    ('clients', ClientsCommand()),
    ('files', FilesCommand()),
    ('messages', MessagesCommand()),
    ('history', HistoryCommand()),
    ('logout', LogoutCommand()),
])
def test_parse_no_argument_commands(line, expected):
    assert parse_command(line) == expected


def test_no_argument_commands_reject_arguments():
    with pytest.raises(ParseError, match='takes no arguments'):
        parse_command('clients now')


def test_parse_public():
    assert parse_command('public bob') == PublicFilesCommand('bob')


def test_parse_upload_defaults():
    assert parse_command('upload notes.txt') == UploadCommand('notes.txt')


def test_parse_upload_with_options():
    cmd = parse_command('upload "my notes.txt" --public --request REQ_3 --desc "as promised"')
    assert cmd == UploadCommand('my notes.txt', is_public=True, request_id='REQ_3', description='as promised')


def test_parse_upload_options_before_path():
    assert parse_command('upload --public a.txt') == UploadCommand('a.txt', is_public=True)


@pytest.mark.parametrize('line, message', [
    ('upload', 'requires a file path'),
    ('upload a.txt b.txt', 'single file path'),
    ('upload a.txt --request', '--request requires a value'),
    ('upload a.txt --private', 'Unknown option'),
])
def test_parse_upload_errors(line, message):
    with pytest.raises(ParseError, match=message):
        parse_command(line)


def test_parse_download():
    assert parse_command('download alice hello.txt') == DownloadCommand('alice', 'hello.txt')


def test_parse_request_joins_description():
    assert parse_command('request ALL the quarterly report') == RequestCommand('ALL', 'the quarterly report')


def test_parse_request_needs_description():
    with pytest.raises(ParseError):
        parse_command('request bob')


def test_parse_delete_file():
    assert parse_command('delete-file a.txt') == DeleteFileCommand('a.txt')


def test_parse_delete_message():
    cmd = parse_command('delete-message File request from bob (ID: REQ_1): slides')
    assert cmd == DeleteMessageCommand('File request from bob (ID: REQ_1): slides')


@pytest.mark.parametrize('line', ['', '   '])
def test_empty_command(line):
    with pytest.raises(ParseError, match='Empty command'):
        parse_command(line)


def test_unknown_command():
    with pytest.raises(ParseError, match='Unknown command: frobnicate'):
        parse_command('frobnicate')


def test_unbalanced_quotes():
    with pytest.raises(ParseError, match='Invalid syntax'):
        parse_command('login "alice pw')


@pytest.mark.parametrize('line', ['signup alice pw', 'login alice', 'recover alice blue', 'download alice'])
def test_wrong_argument_count(line):
    with pytest.raises(ParseError, match='requires exactly'):
        parse_command(line)
