# pylint: disable=missing-module-docstring,missing-function-docstring

import pytest

from session.connection_status import PipelineStatus, TERMINAL_STATUSES, can_transition


def test_happy_path_edges():
    assert can_transition(PipelineStatus.DISCONNECTED, PipelineStatus.CONNECTING)
    assert can_transition(PipelineStatus.CONNECTING, PipelineStatus.STREAMING)
    for terminal in TERMINAL_STATUSES:
        assert can_transition(PipelineStatus.STREAMING, terminal)


def test_connect_failure_edge():
    assert can_transition(PipelineStatus.CONNECTING, PipelineStatus.IO_ERROR)
    assert not can_transition(PipelineStatus.CONNECTING, PipelineStatus.CLOSED_BY_PEER)


@pytest.mark.parametrize("terminal", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
def test_terminal_states_have_no_exit(terminal):
    assert terminal.is_terminal
    for target in PipelineStatus:
        assert not can_transition(terminal, target)


def test_no_reconnect_edge():
    assert not can_transition(PipelineStatus.STREAMING, PipelineStatus.CONNECTING)
    assert not PipelineStatus.STREAMING.is_terminal
