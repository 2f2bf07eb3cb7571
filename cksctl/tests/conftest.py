import os
import pwd
from pathlib import Path

import pytest

from cksctl.config import Settings
from cksctl.modules.node import (
    ClusterSessionState, CommandResult, CommandRunner, ConfirmationGate, HostFS, NodeContext, Prober,
)


class FakeRunner(CommandRunner):
    """CommandRunner that records commands instead of running them.

    Responses are matched by substring against the joined command line; the
    most recently registered match wins.
    """

    def __init__(self, default_rc=0, dry_run=False):
        super().__init__(dry_run=dry_run)
        self.default_rc = default_rc
        self.responses = []
        self.calls = []

    def respond(self, fragment, returncode=0, output=''):
        self.responses.append((fragment, returncode, output))

    def _execute(self, args, timeout, input, env):
        self.calls.append(list(args))
        line = ' '.join(args)
        for fragment, returncode, output in reversed(self.responses):
            if fragment in line:
                return CommandResult(args, returncode, output)
        return CommandResult(args, self.default_rc, '')

    @property
    def commands(self):
        return [' '.join(c) for c in self.calls]

    def ran(self, fragment):
        return any(fragment in c for c in self.commands)

    def index_of(self, fragment):
        for i, c in enumerate(self.commands):
            if fragment in c:
                return i
        raise AssertionError(f"{fragment!r} was never run")


class FakeFetcher:
    """Records downloads and writes empty placeholder files."""

    def __init__(self):
        self.downloads = []
        self.installs = []

    def download(self, url, dest):
        dest = Path(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_text('')
        self.downloads.append(url)
        return dest

    def install_binary(self, url, member, dest_dir, name=None, mode=0o755):
        target = Path(dest_dir) / (name or os.path.basename(member))
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text('')
        self.installs.append((url, member))
        return target


class FakeClock:
    """Monotonic clock that only advances when sleep() is called."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def current_user():
    return pwd.getpwuid(os.getuid()).pw_name


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def fetcher():
    return FakeFetcher()


@pytest.fixture
def settings(tmp_path):
    return Settings(host_root=tmp_path, arch='amd64')


@pytest.fixture
def make_context(tmp_path, settings, runner, fetcher, clock):
    """Build a NodeContext whose host root is tmp_path.

    ``binaries`` lists the executables the prober should find on PATH;
    ``replies`` feeds the confirmation prompt. A dry-run ``fake_runner`` makes
    the filesystem dry-run too.
    """
    def factory(binaries=(), replies=(), assume_yes=False, fake_runner=None):
        fake_runner = fake_runner or runner
        fs = HostFS(tmp_path, dry_run=fake_runner.dry_run)
        answers = list(replies)
        gate = ConfirmationGate(assume_yes=assume_yes, prompt=lambda message: answers.pop(0))
        present = set(binaries)
        prober = Prober(fake_runner, fs, admin_conf=settings.admin_conf,
                        which=lambda name: f"/usr/bin/{name}" if name in present else None)
        session = ClusterSessionState(original_user=current_user(), original_home=Path('/home/ubuntu'))
        return NodeContext(settings=settings, runner=fake_runner, fs=fs, prober=prober, fetcher=fetcher,
                           gate=gate, session=session, sleep=clock.sleep, clock=clock)
    return factory
