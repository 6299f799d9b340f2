import pathlib

import pytest

from safehouse import manifest
from safehouse.utils import ConfigNotFound, InvalidConfig


def write(directory: pathlib.Path, text: str) -> pathlib.Path:
    path = directory / 'safe.yml'
    path.write_text(text)
    return path


def test_load(tmp_path):
    write(tmp_path, """
recipients: [alice@example.invalid, bob@example.invalid]
overrides:
  secrets.yml.gpg.asc: [carol@example.invalid]
files: [b.txt.gpg.asc, a.txt.gpg.asc]
""")
    m = manifest.load(tmp_path)
    assert m.recipients == ['alice@example.invalid', 'bob@example.invalid']
    assert m.overrides == {'secrets.yml.gpg.asc': ['carol@example.invalid']}
    assert m.files == ['a.txt.gpg.asc', 'b.txt.gpg.asc']
    assert m.location == tmp_path
    assert m.path == tmp_path / 'safe.yml'


def test_load_searches_parent_directories(tmp_path):
    write(tmp_path, "recipients: [alice@example.invalid]\n")
    child = tmp_path / 'a' / 'b'
    child.mkdir(parents=True)
    assert manifest.load(child).location == tmp_path


def test_find_manifest_does_not_change_directory(tmp_path, monkeypatch):
    write(tmp_path, "recipients: [alice@example.invalid]\n")
    child = tmp_path / 'child'
    child.mkdir()
    monkeypatch.chdir(child)
    assert manifest.find_manifest(child) == tmp_path / 'safe.yml'
    assert pathlib.Path.cwd() == child


def test_load_not_found(tmp_path, mocker):
    mocker.patch('safehouse.manifest.find_manifest', return_value=None)
    with pytest.raises(ConfigNotFound):
        manifest.load(tmp_path)


def test_load_no_recipients(tmp_path):
    write(tmp_path, "recipients: []\nfiles: [a.txt.gpg.asc]\n")
    with pytest.raises(InvalidConfig, match="no recipients"):
        manifest.load(tmp_path)


def test_load_missing_recipients(tmp_path):
    write(tmp_path, "files: []\n")
    with pytest.raises(InvalidConfig):
        manifest.load(tmp_path)


def test_load_malformed(tmp_path):
    write(tmp_path, "recipients: [alice\n")
    with pytest.raises(InvalidConfig):
        manifest.load(tmp_path)


@pytest.mark.parametrize('text', [
    "- a list\n",
    "recipients: alice@example.invalid\n",
    "recipients: [alice@example.invalid]\noverrides: [a]\n",
    "recipients: [alice@example.invalid]\nfiles: {a: b}\n",
])
def test_load_wrong_shape(tmp_path, text):
    write(tmp_path, text)
    with pytest.raises(InvalidConfig):
        manifest.load(tmp_path)


def test_save_sorts_files(tmp_path):
    write(tmp_path, "recipients: [alice@example.invalid]\n")
    m = manifest.load(tmp_path)
    m.add('z.txt.gpg.asc')
    m.add('a.txt.gpg.asc')
    m.add('a.txt.gpg.asc')
    manifest.save(m)

    assert (tmp_path / 'safe.yml').read_text() == (
        "recipients:\n"
        "- alice@example.invalid\n"
        "files:\n"
        "- a.txt.gpg.asc\n"
        "- z.txt.gpg.asc\n"
    )
    assert [p.name for p in tmp_path.iterdir()] == ['safe.yml']


def test_save_and_load(tmp_path):
    write(tmp_path, "recipients: [alice@example.invalid]\n")
    m = manifest.load(tmp_path)
    m.overrides['x.yml.gpg.asc'] = ['bob@example.invalid']
    m.add('x.yml.gpg.asc')
    manifest.save(m)
    assert manifest.load(tmp_path) == m


def test_discard(tmp_path):
    m = manifest.Manifest(recipients=['a'], files=['x', 'y'], location=tmp_path)
    m.discard('x')
    m.discard('missing')
    assert m.files == ['y']


def test_recipients_for_override_replaces_default(tmp_path):
    m = manifest.Manifest(
        recipients=['A'],
        overrides={'secrets.yml.gpg.asc': ['B']},
        location=tmp_path)
    assert m.recipients_for('secrets.yml.gpg.asc') == ['B']
    assert m.recipients_for('other.yml.gpg.asc') == ['A']


def test_location_is_immutable(tmp_path):
    m = manifest.Manifest(recipients=['A'], location=tmp_path)
    with pytest.raises(AttributeError):
        m.location = tmp_path / 'elsewhere'


def test_save_writes_overrides_between_recipients_and_files(tmp_path):
    write(tmp_path, "recipients: [A]\noverrides: {x.yml.gpg.asc: [B]}\nfiles: [x.yml.gpg.asc]\n")
    manifest.save(manifest.load(tmp_path))
    assert (tmp_path / 'safe.yml').read_text() == (
        "recipients:\n"
        "- A\n"
        "overrides:\n"
        "  x.yml.gpg.asc:\n"
        "  - B\n"
        "files:\n"
        "- x.yml.gpg.asc\n"
    )


def test_find_manifest_walks_to_the_root_without_finding_one(tmp_path):
    if any((d / 'safe.yml').exists() for d in tmp_path.parents):
        pytest.skip("a parent of the temporary directory contains a safe.yml")

    start = tmp_path / 'a' / 'b' / 'c'
    start.mkdir(parents=True)

    assert manifest.find_manifest(start) is None
    with pytest.raises(ConfigNotFound):
        manifest.load(start)
