"""Pytest configuration and shared fixtures for all tests."""

import pytest

from create3.factory import Create3Factory
from create3.storage.ledger import Ledger
from create3.vm.evm import ExecutionEnvironment
from create3.vm.hooks import ExecutionHook


class RecordingHook(ExecutionHook):
    """Records protocol stages, creations and the relay counter as the relay halts."""

    def __init__(self):
        self.env = None
        self.stages = []
        self.creates = []
        self.relay_counter_after = None

    def on_deploy_stage(self, stage):
        self.stages.append(stage)

    def on_create(self, creator, address, success):
        self.creates.append((creator, address, success))

    def after_call(self, frame, success, return_data):
        # Depth 1 is the relay: its creation first, then the call that runs the payload.
        if frame.depth == 1 and self.env is not None:
            self.relay_counter_after = self.env.state.get_nonce(frame.address)


# =============================================================================
# Execution
# =============================================================================

@pytest.fixture
def ledger():
    return Ledger()


@pytest.fixture
def hook():
    return RecordingHook()


@pytest.fixture
def env(ledger, hook):
    environment = ExecutionEnvironment(state=ledger, hook=hook)
    hook.env = environment
    return environment


@pytest.fixture
def factory(env):
    f = Create3Factory()
    f.install(env)
    return f
