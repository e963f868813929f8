import json

from pytest import raises

from propbind.server import EntityServer
from propbind.server.cli import config_from_args, parse_args, serve_from_cli


CONFIG = {
    "entities": {
        "knob": "propbind.example_entities:Knob",
        "dial": {
            "class": "propbind.example_entities:Dial",
            "values": {"units": "%"},
        },
    },
    "bindings": [
        {
            "source": "dial",
            "key": "reading",
            "target": "knob",
            "target_key": "position",
            "forward": "propbind.example_entities:fraction",
            "reverse": "propbind.example_entities:percent",
        }
    ],
    "channel": {"max_depth": 64},
}


def test_parse_args():
    """Check the defaults, and that log levels are case insensitive."""
    args = parse_args(["-j", "{}"])
    assert args.host == "127.0.0.1"
    assert args.port == 5000
    assert args.log_level == "INFO"
    assert parse_args(["--log-level", "debug"]).log_level == "DEBUG"
    with raises(SystemExit):
        parse_args(["--log-level", "chatty"])


def test_serve_from_cli_with_config_json():
    """Check we can create a server from the command line, using JSON"""
    server = serve_from_cli(["-j", json.dumps(CONFIG)], dry_run=True)
    assert isinstance(server, EntityServer)
    assert server.channel.max_depth == 64
    server.entity("knob").position = 0.2
    assert server.entity("dial").reading == 20


def test_serve_from_cli_with_config_file(tmp_path):
    """Check we can create a server from the command line, using a file"""
    path = tmp_path / "config.json"
    path.write_text(json.dumps(CONFIG))
    server = serve_from_cli(["-c", str(path)], dry_run=True)
    assert list(server.entities) == ["knob", "dial"]


def test_serve_with_no_config():
    with raises(RuntimeError):
        serve_from_cli([], dry_run=True)


def test_serve_with_both_configs(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps(CONFIG))
    with raises(RuntimeError):
        config_from_args(parse_args(["-c", str(path), "-j", json.dumps(CONFIG)]))


def test_invalid_entity():
    """Check it fails for entities that can't be imported"""
    config_json = json.dumps(
        {"entities": {"broken": "propbind.example_entities:MissingEntity"}}
    )
    with raises(SystemExit) as excinfo:
        serve_from_cli(["-j", config_json], dry_run=True)
    assert excinfo.value.code == 3


def test_invalid_binding():
    """Check it fails for bindings to entities that aren't configured"""
    config = {**CONFIG, "entities": {"dial": "propbind.example_entities:Dial"}}
    with raises(SystemExit) as excinfo:
        serve_from_cli(["-j", json.dumps(config)], dry_run=True)
    assert excinfo.value.code == 3


def test_missing_config_file():
    with raises(FileNotFoundError):
        serve_from_cli(["-c", "non_existent_file.json"], dry_run=True)
