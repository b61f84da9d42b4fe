"""
Tests for the command line entry points.

These tests cover:
1. Usage errors exiting with status 1
2. Argument parsing for the bridge and the relay
3. Startup failures returning status 2
"""

import socket
from unittest.mock import patch

import pytest

from wsbridge.cli import bridge_main, build_bridge_parser, build_relay_parser, relay_main
from wsbridge.servers.lifecycle import EXIT_STARTUP_FAILURE, EXIT_USAGE


@pytest.fixture
def taken_port():
    blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    blocker.bind(("127.0.0.1", 0))
    blocker.listen(1)
    yield blocker.getsockname()[1]
    blocker.close()


class TestBridgeArguments:
    def test_parses_positional_arguments(self):
        args = build_bridge_parser().parse_args(["8080", "127.0.0.1", "9002", "10.0.0.5", "9001"])

        assert args.websocket_port == 8080
        assert args.in_server_ip == "127.0.0.1"
        assert args.in_server_port == 9002
        assert args.out_server_ip == "10.0.0.5"
        assert args.out_server_port == 9001
        assert args.hexdump is False

    def test_missing_arguments_exit_with_usage(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            bridge_main(["8080", "127.0.0.1"])

        assert exc_info.value.code == EXIT_USAGE
        assert "usage:" in capsys.readouterr().err

    @pytest.mark.parametrize("port", ["abc", "0", "70000"])
    def test_invalid_port_exits_with_usage(self, port):
        with pytest.raises(SystemExit) as exc_info:
            build_bridge_parser().parse_args([port, "127.0.0.1", "9002", "127.0.0.1", "9001"])

        assert exc_info.value.code == EXIT_USAGE


class TestRelayArguments:
    def test_default_ports(self):
        args = build_relay_parser().parse_args([])

        assert args.in_port == 9002
        assert args.out_port == 9001

    def test_explicit_ports(self):
        args = build_relay_parser().parse_args(["7002", "7001"])

        assert (args.in_port, args.out_port) == (7002, 7001)

    def test_too_many_arguments_exit_with_usage(self):
        with pytest.raises(SystemExit) as exc_info:
            build_relay_parser().parse_args(["1", "2", "3"])

        assert exc_info.value.code == EXIT_USAGE


class TestStartupFailure:
    def test_relay_port_in_use(self, taken_port):
        with patch("wsbridge.cli.install_signal_handlers"), patch("wsbridge.cli.setup_logging"):
            code = relay_main([str(taken_port), "--host", "127.0.0.1"])

        assert code == EXIT_STARTUP_FAILURE

    def test_bridge_port_in_use(self, taken_port):
        argv = [str(taken_port), "127.0.0.1", "9002", "127.0.0.1", "9001", "--host", "127.0.0.1"]

        with patch("wsbridge.cli.install_signal_handlers"), patch("wsbridge.cli.setup_logging"):
            code = bridge_main(argv)

        assert code == EXIT_STARTUP_FAILURE
