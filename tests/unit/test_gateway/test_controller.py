"""Tests for the gateway controller and its connection state machine."""

from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest

from linegate.domain.models import ConnectionEvent, ConnectionState
from linegate.gateway.controller import (
    CLOSE_TRY_AGAIN_LATER,
    TRANSITIONS,
    GatewayController,
    InvalidTransition,
    next_state,
)


def _echo_into_sink(command, sink) -> None:
    sink.write(f"ack {command}\n")


class TestTransitionTable:
    @pytest.mark.parametrize(
        ("state", "event", "expected"),
        [
            (ConnectionState.CONNECTING, ConnectionEvent.ADMIT, ConnectionState.OPEN),
            (ConnectionState.CONNECTING, ConnectionEvent.REJECT, ConnectionState.CLOSING),
            (ConnectionState.CONNECTING, ConnectionEvent.DISCONNECT, ConnectionState.CLOSED),
            (ConnectionState.OPEN, ConnectionEvent.CLOSE, ConnectionState.CLOSING),
            (ConnectionState.OPEN, ConnectionEvent.DISCONNECT, ConnectionState.CLOSED),
            (ConnectionState.CLOSING, ConnectionEvent.DISCONNECT, ConnectionState.CLOSED),
        ],
    )
    def test_allowed(self, state, event, expected) -> None:
        assert next_state(state, event) == expected

    def test_closed_is_terminal(self) -> None:
        for event in ConnectionEvent:
            assert (ConnectionState.CLOSED, event) not in TRANSITIONS

    def test_invalid_raises(self) -> None:
        with pytest.raises(InvalidTransition) as exc_info:
            next_state(ConnectionState.OPEN, ConnectionEvent.ADMIT)
        assert exc_info.value.state == ConnectionState.OPEN
        assert exc_info.value.event == ConnectionEvent.ADMIT


class TestOnConnect:
    def test_admitted_gets_welcome(self, controller: GatewayController, make_connection) -> None:
        connection = make_connection(1)
        assert controller.on_connect(connection) is True
        assert connection.state == ConnectionState.OPEN
        assert controller.registry.count() == 1
        assert json.loads(connection.sent[0]) == {"connected": True, "clientId": 1}
        assert connection.closed_with is None

    def test_rejected_gets_notice_then_close(
        self, controller: GatewayController, make_connection
    ) -> None:
        for i in range(1, 4):
            controller.on_connect(make_connection(i))
        extra = make_connection(4)
        assert controller.on_connect(extra) is False
        assert extra.state == ConnectionState.CLOSING
        assert [json.loads(m) for m in extra.sent] == [{"error": "Max clients reached"}]
        assert extra.closed_with is not None
        assert extra.closed_with == (CLOSE_TRY_AGAIN_LATER, "Max clients reached")
        assert controller.registry.count() == 3

    def test_rejected_then_disconnected_keeps_count(
        self, controller: GatewayController, make_connection
    ) -> None:
        for i in range(1, 4):
            controller.on_connect(make_connection(i))
        extra = make_connection(4)
        controller.on_connect(extra)
        controller.on_disconnect(extra)
        assert extra.state == ConnectionState.CLOSED
        assert controller.registry.count() == 3

    def test_duplicate_id_close_reason_names_the_cause(
        self, controller: GatewayController, make_connection
    ) -> None:
        controller.on_connect(make_connection(1))
        twin = make_connection(1)
        assert controller.on_connect(twin) is False
        notice = json.loads(twin.sent[0])
        assert notice == {"error": "Connection #1 is already registered"}
        assert twin.closed_with == (CLOSE_TRY_AGAIN_LATER, notice["error"])
        assert controller.registry.count() == 1


class TestOnData:
    def test_dispatches_normalized_command(
        self, controller: GatewayController, mock_interpreter: MagicMock, make_connection
    ) -> None:
        connection = make_connection(1)
        controller.on_connect(connection)
        assert controller.on_data(connection, "  status ") == "<status>"
        mock_interpreter.interpret.assert_called_once()
        command, sink = mock_interpreter.interpret.call_args.args
        assert command == "<status>"
        assert sink.connection is connection
        assert sink.capacity == 256

    def test_output_routed_to_sender_only(
        self, controller: GatewayController, mock_interpreter: MagicMock, make_connection
    ) -> None:
        mock_interpreter.interpret.side_effect = _echo_into_sink
        a, b = make_connection(1), make_connection(2)
        controller.on_connect(a)
        controller.on_connect(b)
        controller.on_data(a, "<s>")
        assert a.sent[1:] == ["ack <s>"]
        assert len(b.sent) == 1

    def test_unterminated_output_is_flushed(
        self, controller: GatewayController, mock_interpreter: MagicMock, make_connection
    ) -> None:
        mock_interpreter.interpret.side_effect = lambda cmd, sink: sink.write("no newline")
        connection = make_connection(1)
        controller.on_connect(connection)
        controller.on_data(connection, "x")
        assert connection.sent[-1] == "no newline"

    def test_fresh_sink_per_dispatch(
        self, controller: GatewayController, mock_interpreter: MagicMock, make_connection
    ) -> None:
        connection = make_connection(1)
        controller.on_connect(connection)
        controller.on_data(connection, "a")
        controller.on_data(connection, "b")
        sinks = [c.args[1] for c in mock_interpreter.interpret.call_args_list]
        assert sinks[0] is not sinks[1]

    @pytest.mark.parametrize("payload", ["", "   ", "\r\n", "x" * 129])
    def test_malformed_payload_dropped(
        self,
        controller: GatewayController,
        mock_interpreter: MagicMock,
        make_connection,
        payload: str,
    ) -> None:
        connection = make_connection(1)
        controller.on_connect(connection)
        assert controller.on_data(connection, payload) is None
        mock_interpreter.interpret.assert_not_called()
        assert connection.state == ConnectionState.OPEN
        assert len(connection.sent) == 1

    def test_ignored_when_not_open(
        self, controller: GatewayController, mock_interpreter: MagicMock, make_connection
    ) -> None:
        connection = make_connection(1)
        assert controller.on_data(connection, "<s>") is None
        mock_interpreter.interpret.assert_not_called()

    def test_interpreter_fault_propagates_and_registry_stays(
        self, controller: GatewayController, mock_interpreter: MagicMock, make_connection
    ) -> None:
        def explode(command, sink) -> None:
            sink.write("partial")
            raise RuntimeError("parser crashed")

        mock_interpreter.interpret.side_effect = explode
        connection = make_connection(1)
        controller.on_connect(connection)
        with pytest.raises(RuntimeError, match="parser crashed"):
            controller.on_data(connection, "<s>")
        assert connection.sent[-1] == "partial"
        assert controller.registry.count() == 1
        assert connection.state == ConnectionState.OPEN


class TestOnDisconnect:
    def test_removes_and_closes(self, controller: GatewayController, make_connection) -> None:
        connection = make_connection(1)
        controller.on_connect(connection)
        controller.on_disconnect(connection)
        assert connection.state == ConnectionState.CLOSED
        assert controller.registry.count() == 0

    def test_second_disconnect_is_noop(
        self, controller: GatewayController, make_connection
    ) -> None:
        a, b = make_connection(1), make_connection(2)
        controller.on_connect(a)
        controller.on_connect(b)
        controller.on_disconnect(a)
        controller.on_disconnect(a)
        assert controller.registry.count() == 1
        assert a.state == ConnectionState.CLOSED

    def test_disconnect_while_connecting(
        self, controller: GatewayController, make_connection
    ) -> None:
        connection = make_connection(1)
        controller.on_disconnect(connection)
        assert connection.state == ConnectionState.CLOSED


class TestOnError:
    def test_error_does_not_change_state(
        self, controller: GatewayController, make_connection
    ) -> None:
        connection = make_connection(1)
        controller.on_connect(connection)
        controller.on_error(connection, OSError("reset"))
        controller.on_error(connection)
        assert connection.state == ConnectionState.OPEN
        assert controller.registry.count() == 1


class TestServerOperations:
    def test_close_moves_to_closing(self, controller: GatewayController, make_connection) -> None:
        connection = make_connection(1)
        controller.on_connect(connection)
        controller.close(connection, 1000, "bye")
        assert connection.state == ConnectionState.CLOSING
        assert connection.closed_with == (1000, "bye")
        controller.on_disconnect(connection)
        assert controller.registry.count() == 0

    def test_close_unadmitted_raises(
        self, controller: GatewayController, make_connection
    ) -> None:
        with pytest.raises(InvalidTransition):
            controller.close(make_connection(1))

    def test_broadcast_reaches_open_connections(
        self, controller: GatewayController, make_connection
    ) -> None:
        a, b = make_connection(1), make_connection(2)
        controller.on_connect(a)
        controller.on_connect(b)
        controller.close(b)
        assert controller.broadcast("<p1>") == 1
        assert a.sent[-1] == "<p1>"

    def test_info(self, controller: GatewayController, make_connection) -> None:
        controller.on_connect(make_connection(1))
        info = controller.info()
        assert info.version == "test 1.0"
        assert info.clients == 1
        assert info.max_clients == 3
        assert info.model_dump(by_alias=True) == {
            "version": "test 1.0",
            "clients": 1,
            "maxClients": 3,
        }
