import pytest
from cassandra import ConsistencyLevel

from dump_settings import DEFAULT_NODES, DumpSettings, SettingsError, load_settings


def test_missing_file_gives_defaults(tmp_path):
    settings = load_settings(str(tmp_path / "nope.yaml"))
    assert settings.nodes == DEFAULT_NODES
    assert settings.port == 9042
    assert settings.keyspace == "ddsc"
    assert settings.column_family == "events"
    assert settings.page_size == 8760
    assert settings.encoding == "UTF-8"
    assert settings.consistency_level == ConsistencyLevel.ONE


def test_empty_file_gives_defaults(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("")
    assert load_settings(str(path)).page_size == 8760


def test_yaml_overrides(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text(
        "CASSANDRA_NODES: 127.0.0.1, 127.0.0.2\n"
        "CASSANDRA_PORT: 9142\n"
        "COLUMN_FAMILY: events_test\n"
        "PAGE_SIZE: 100\n"
        "CONSISTENCY: quorum\n"
        "PROGRESS: false\n"
    )
    settings = load_settings(str(path))
    assert settings.nodes == ["127.0.0.1", "127.0.0.2"]
    assert settings.port == 9142
    assert settings.column_family == "events_test"
    assert settings.keyspace == "ddsc"
    assert settings.page_size == 100
    assert settings.consistency_level == ConsistencyLevel.QUORUM
    assert settings.progress is False


@pytest.mark.parametrize("kwargs", [
    {"nodes": []},
    {"page_size": 0},
    {"encoding": "no-such-codec"},
    {"consistency": "SOMETIMES"},
])
def test_bad_values(kwargs):
    with pytest.raises(SettingsError):
        DumpSettings(**kwargs)


def test_document_must_be_a_mapping(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(SettingsError):
        load_settings(str(path))


@pytest.mark.parametrize("yaml_text", [
    "CASSANDRA_PORT: not-a-port\n",
    "PAGE_SIZE: lots\n",
    "PAGE_SIZE:\n  - 1\n",
    "ENCODING: 8\n",
])
def test_bad_yaml_values_raise_settings_error(tmp_path, yaml_text):
    path = tmp_path / "settings.yaml"
    path.write_text(yaml_text)
    with pytest.raises(SettingsError):
        load_settings(str(path))
