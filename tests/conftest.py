import hypothesis
import pytest

from intrange.settings import Settings

# disable hypothesis deadline globally
hypothesis.settings.register_profile("ci", deadline=None)
hypothesis.settings.load_profile("ci")


@pytest.fixture
def settings():
    # independent of INTRANGE_* in the environment
    return Settings(max_iterations=5, watch=None, debug=False)
