import pytest

from libdas.reporting import SilentReporter, get_reporter, set_reporter


@pytest.fixture(autouse=True)
def _silent_reporter():
    # the default reporter binds sys.stderr on first use; keep tests isolated
    previous = get_reporter()
    set_reporter(SilentReporter())
    yield
    set_reporter(previous)
